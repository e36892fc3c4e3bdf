"""
Usage ledger
Per-card consumption rules:
- at most one successful scan per card per meal window
- usage_count never exceeds max_usage
"""

from datetime import datetime
from typing import Optional

from ..models.guest import Card
from .scan_store import ScanStore


class UsageLedger:
    """Card usage ledger backed by the scan audit trail"""

    def __init__(self, store: Optional[ScanStore] = None):
        self.store = store or ScanStore()

    def has_consumed_window(self, card_id: str, window_start: datetime, window_end: datetime) -> bool:
        """True if the card already has a successful scan within [window_start, window_end]"""
        return self.store.has_success_between(card_id, window_start, window_end)

    @staticmethod
    def within_usage_limit(card: Card) -> bool:
        return card.max_usage is None or card.usage_count < card.max_usage

    def record_consumption(self, card_id: str) -> Optional[int]:
        """
        Increment usage_count by one

        The limit check and the increment are one UPDATE statement.

        Returns:
            Optional[int]: the new usage count, None if the limit was already reached
        """
        return self.store.increment_usage(card_id)
