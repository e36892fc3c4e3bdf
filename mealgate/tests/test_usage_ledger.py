"""
Usage ledger tests
"""

from datetime import datetime

from ..models.scan import ScanLog
from ..services.scan_store import ScanStore, new_id
from ..services.usage_ledger import UsageLedger


def record_scan(store, card, scan_time, is_success=True):
    store.insert_scan_log(ScanLog(id=new_id(), card_id=card.id, guest_id=card.guest_id,
                                  station_id="TEST", scan_time=scan_time, is_success=is_success))


class TestUsageLedger:

    def test_consumed_window_detection(self, test_db, guest_card):
        _, card = guest_card
        store = ScanStore(test_db)
        ledger = UsageLedger(store)
        start, end = datetime(2024, 1, 15, 12, 0), datetime(2024, 1, 15, 15, 0, 59, 999999)

        assert not ledger.has_consumed_window(card.id, start, end)

        record_scan(store, card, datetime(2024, 1, 15, 13, 0), is_success=False)
        assert not ledger.has_consumed_window(card.id, start, end)

        record_scan(store, card, datetime(2024, 1, 15, 8, 0))
        assert not ledger.has_consumed_window(card.id, start, end)

        record_scan(store, card, datetime(2024, 1, 15, 15, 0, 30))
        assert ledger.has_consumed_window(card.id, start, end)

    def test_within_usage_limit(self, db_helper, guest_card):
        guest, _ = guest_card
        assert UsageLedger.within_usage_limit(db_helper.create_card(guest.id))
        assert UsageLedger.within_usage_limit(db_helper.create_card(guest.id, max_usage=2, usage_count=1))
        assert not UsageLedger.within_usage_limit(db_helper.create_card(guest.id, max_usage=2, usage_count=2))

    def test_record_consumption_stops_at_limit(self, test_db, db_helper, guest_card):
        """The conditional increment never passes max_usage"""
        guest, _ = guest_card
        card = db_helper.create_card(guest.id, max_usage=2)
        ledger = UsageLedger(ScanStore(test_db))

        assert ledger.record_consumption(card.id) == 1
        assert ledger.record_consumption(card.id) == 2
        assert ledger.record_consumption(card.id) is None
        assert db_helper.get_usage_count(card.id) == 2

    def test_unlimited_card_keeps_counting(self, test_db, guest_card, db_helper):
        _, card = guest_card
        ledger = UsageLedger(ScanStore(test_db))
        for expected in range(1, 6):
            assert ledger.record_consumption(card.id) == expected
        assert db_helper.get_usage_count(card.id) == 5
