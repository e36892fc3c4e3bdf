"""
Custom exception classes
Infrastructure and request errors carry a stable error code and a bilingual
(English/Arabic) message pair.

Scan denials (card expired, outside meal time, ...) are NOT exceptions; they
are ScanOutcome values produced by the card validator.
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Base application error"""

    default_code: Optional[str] = None
    default_message_ar: str = "خطأ في النظام"

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        message_ar: str = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code or self.__class__.__name__
        self.details = details or {}
        self.message_ar = message_ar or self.default_message_ar
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """Storage unreachable or query failure"""
    default_code = "DATABASE_ERROR"


class ConcurrencyError(BaseApplicationError):
    """Transaction conflict"""
    default_code = "CONCURRENCY_CONFLICT"
    default_message_ar = "النظام مشغول، يرجى المحاولة لاحقاً"


class ValidationError(BaseApplicationError):
    """Request data validation error"""
    default_code = "VALIDATION_ERROR"
    default_message_ar = "بيانات غير صحيحة"


class NotFoundError(BaseApplicationError):
    """Referenced record does not exist"""
    default_code = "RESOURCE_NOT_FOUND"


class GuestNotFoundError(NotFoundError):
    default_code = "GUEST_NOT_FOUND"
    default_message_ar = "الضيف غير موجود"


class MealTimeNotFoundError(NotFoundError):
    default_code = "MEAL_TIME_NOT_FOUND"
    default_message_ar = "وقت الوجبة غير موجود"


class CardNotFoundError(NotFoundError):
    default_code = "CARD_NOT_FOUND"
    default_message_ar = "البطاقة غير موجودة"


class GateNotFoundError(NotFoundError):
    default_code = "GATE_NOT_FOUND"
    default_message_ar = "البوابة غير موجودة"


class BusinessRuleError(BaseApplicationError):
    """Business rule violation outside the scan pipeline"""
    default_code = "BUSINESS_RULE_VIOLATION"


class GuestInactiveError(BusinessRuleError):
    default_code = "GUEST_INACTIVE"
    default_message_ar = "الضيف غير نشط"


class MealTimeInactiveError(BusinessRuleError):
    default_code = "MEAL_TIME_INACTIVE"
    default_message_ar = "وقت الوجبة غير نشط"


class GateInactiveError(BusinessRuleError):
    default_code = "GATE_INACTIVE"
    default_message_ar = "البوابة غير نشطة حالياً"
