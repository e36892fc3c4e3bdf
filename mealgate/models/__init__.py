"""
Domain models.
"""

from .guest import Card, CardType, Guest
from .scan import AccessLog, ScanCode, ScanLog, ScanOutcome, ScanStatus
from .venue import Gate, GateType, MealTime, Restaurant

__all__ = [
    "AccessLog",
    "Card",
    "CardType",
    "Gate",
    "GateType",
    "Guest",
    "MealTime",
    "Restaurant",
    "ScanCode",
    "ScanLog",
    "ScanOutcome",
    "ScanStatus",
]
