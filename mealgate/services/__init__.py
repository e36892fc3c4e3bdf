"""
Business logic services.
Scan decisions, scan history and card issuing.
"""

from .card_service import CardService
from .card_validator import AllowedWindows, CardValidator
from .gate_policy import GateAccessPolicy, GateDecision, GateReason, gate_access_policy
from .meal_window import MealWindowResolver, meal_window_resolver
from .qr_codec import QrCodec, qr_codec
from .scan_record_service import ScanRecordService
from .scan_service import AccessResult, GateScanResult, ScanResult, ScanService
from .scan_store import ScanStore
from .usage_ledger import UsageLedger

__all__ = [
    "AccessResult",
    "AllowedWindows",
    "CardService",
    "CardValidator",
    "GateAccessPolicy",
    "GateDecision",
    "GateReason",
    "GateScanResult",
    "MealWindowResolver",
    "QrCodec",
    "ScanRecordService",
    "ScanResult",
    "ScanService",
    "ScanStore",
    "UsageLedger",
    "gate_access_policy",
    "meal_window_resolver",
    "qr_codec",
]
