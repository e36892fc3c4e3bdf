"""
Scan decision and audit log models
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, Optional, Tuple
from enum import Enum
from .base import BaseEntity
from .venue import MealTime


class ScanCode(str, Enum):
    """Terminal outcome of a scan evaluation"""
    SUCCESS = "SUCCESS"
    CARD_NOT_FOUND = "CARD_NOT_FOUND"
    CARD_DISABLED = "CARD_DISABLED"
    CARD_EXPIRED = "CARD_EXPIRED"
    GUEST_INACTIVE = "GUEST_INACTIVE"
    GUEST_CHECKOUT = "GUEST_CHECKOUT"
    OUTSIDE_MEAL_TIME = "OUTSIDE_MEAL_TIME"
    MEAL_NOT_ALLOWED = "MEAL_NOT_ALLOWED"
    MEAL_ALREADY_CONSUMED = "MEAL_ALREADY_CONSUMED"
    MEAL_LIMIT_EXCEEDED = "MEAL_LIMIT_EXCEEDED"
    ERROR = "ERROR"  # infrastructure failure, not a business denial


# (english, arabic)
SCAN_MESSAGES: Dict[ScanCode, Tuple[str, str]] = {
    ScanCode.SUCCESS: ("Scan successful - Access granted", "تم المسح بنجاح - تم السماح بالدخول"),
    ScanCode.CARD_NOT_FOUND: ("Card not found", "البطاقة غير موجودة"),
    ScanCode.CARD_DISABLED: ("Card is inactive", "البطاقة غير نشطة"),
    ScanCode.CARD_EXPIRED: ("Card has expired", "البطاقة منتهية الصلاحية"),
    ScanCode.GUEST_INACTIVE: ("Guest is inactive", "الضيف غير نشط"),
    ScanCode.GUEST_CHECKOUT: ("Guest has checked out", "الضيف قد غادر"),
    ScanCode.OUTSIDE_MEAL_TIME: ("Access not allowed at this time", "الدخول غير مسموح في هذا الوقت"),
    ScanCode.MEAL_NOT_ALLOWED: ("Meal not allowed", "الوجبة غير مسموحة"),
    ScanCode.MEAL_ALREADY_CONSUMED: ("Meal already consumed in this window", "تم تناول الوجبة بالفعل في هذه الفترة"),
    ScanCode.MEAL_LIMIT_EXCEEDED: ("Maximum usage limit exceeded", "تم تجاوز الحد الأقصى للاستخدام"),
    ScanCode.ERROR: ("System error", "خطأ في النظام"),
}

NOT_YET_VALID_MESSAGES = ("Card is not valid yet", "البطاقة غير صالحة بعد")

# Denials that are expected during normal service rather than card problems
WARNING_CODES = frozenset({
    ScanCode.OUTSIDE_MEAL_TIME,
    ScanCode.MEAL_LIMIT_EXCEEDED,
    ScanCode.MEAL_ALREADY_CONSUMED,
})


class ScanStatus(str, Enum):
    """Scan history classification"""
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    FAILED = "FAILED"


class ScanOutcome(BaseModel):
    """Result of one card evaluation"""
    code: ScanCode
    message: str
    message_ar: str
    matched_meal_time: Optional[MealTime] = None

    @classmethod
    def of(cls, code: ScanCode, matched_meal_time: Optional[MealTime] = None,
           messages: Optional[Tuple[str, str]] = None) -> "ScanOutcome":
        message, message_ar = messages or SCAN_MESSAGES[code]
        return cls(code=code, message=message, message_ar=message_ar,
                   matched_meal_time=matched_meal_time)

    @property
    def success(self) -> bool:
        return self.code == ScanCode.SUCCESS

    @property
    def status(self) -> ScanStatus:
        return classify_scan(self.success, self.code.value)


def classify_scan(is_success: bool, error_code: Optional[str]) -> ScanStatus:
    """SUCCESS, WARNING for routine meal-window denials, FAILED otherwise"""
    if is_success:
        return ScanStatus.SUCCESS
    if error_code in {code.value for code in WARNING_CODES}:
        return ScanStatus.WARNING
    return ScanStatus.FAILED


class ScanLog(BaseEntity):
    """Append-only record of one scan attempt"""
    id: str = Field(..., description="Scan ID")
    card_id: Optional[str] = Field(None, description="Card ID")
    guest_id: Optional[str] = Field(None, description="Guest ID")
    station_id: Optional[str] = Field(None, description="Station or gate ID")
    scan_time: datetime = Field(..., description="Scan time")
    is_success: bool = Field(..., description="Success flag")
    error_code: Optional[str] = Field(None, description="Error code")
    error_message: Optional[str] = Field(None, description="Error message")
    matched_meal_time_id: Optional[str] = Field(None, description="Resolved meal time ID")
    processing_time_ms: Optional[int] = Field(None, description="Evaluation time")


class AccessLog(BaseEntity):
    """Append-only record of one gate scan attempt"""
    id: str = Field(..., description="Access log ID")
    gate_id: str = Field(..., description="Gate ID")
    card_id: Optional[str] = Field(None, description="Card ID")
    guest_id: Optional[str] = Field(None, description="Guest ID")
    scan_time: datetime = Field(..., description="Scan time")
    is_success: bool = Field(..., description="Success flag")
    access_type: str = Field("ENTRY", description="Access type")
    error_code: Optional[str] = Field(None, description="Error code")
    error_message: Optional[str] = Field(None, description="Error message")
