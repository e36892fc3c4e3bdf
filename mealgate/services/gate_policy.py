"""
Gate access policy
Gate-type rules applied on top of card validation for gate scans:
- MAIN gates admit every valid card
- RESTAURANT gates admit guests whose restaurant is linked to the gate
- any other gate type is denied
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..models.venue import Gate, GateType, Restaurant


class GateReason(str, Enum):
    """Gate decision reason codes"""
    MAIN_GATE = "MAIN_GATE"
    RESTAURANT_GATE = "RESTAURANT_GATE"
    NO_RESTAURANT = "NO_RESTAURANT"
    RESTAURANT_NOT_LINKED = "RESTAURANT_NOT_LINKED"
    RESTAURANT_MISMATCH = "RESTAURANT_MISMATCH"
    UNSUPPORTED_GATE_TYPE = "UNSUPPORTED_GATE_TYPE"


class GateDecision(BaseModel):
    """Allowed / Denied(reason)"""
    allowed: bool
    reason: GateReason
    message: str
    message_ar: str


class GateAccessPolicy:
    """Gate access policy, pure"""

    def authorize(self, gate: Gate, guest_restaurant: Optional[Restaurant],
                  requested_restaurant_id: Optional[str] = None) -> GateDecision:
        """
        Decide whether a validated card may pass this gate

        Args:
            gate: scanned gate with its linked restaurant ids
            guest_restaurant: restaurant of the card holder, None if unassigned
            requested_restaurant_id: restaurant explicitly requested by the station
        """
        if gate.gate_type == GateType.MAIN.value:
            return GateDecision(
                allowed=True, reason=GateReason.MAIN_GATE,
                message="Entry allowed through the main gate",
                message_ar="الدخول مسموح من البوابة الرئيسية",
            )

        if gate.gate_type == GateType.RESTAURANT.value:
            if guest_restaurant is None:
                return GateDecision(
                    allowed=False, reason=GateReason.NO_RESTAURANT,
                    message="Guest is not registered to any restaurant",
                    message_ar="الضيف غير مسجل في أي مطعم",
                )

            if guest_restaurant.id not in gate.restaurant_ids:
                return GateDecision(
                    allowed=False, reason=GateReason.RESTAURANT_NOT_LINKED,
                    message=f"This card belongs to restaurant {guest_restaurant.name}, not this gate",
                    message_ar=f"هذه البطاقة مخصصة لمطعم {guest_restaurant.display_name} وليس لهذه البوابة",
                )

            if requested_restaurant_id and requested_restaurant_id != guest_restaurant.id:
                return GateDecision(
                    allowed=False, reason=GateReason.RESTAURANT_MISMATCH,
                    message="Requested restaurant does not match the guest's restaurant",
                    message_ar="المطعم المطلوب لا يتطابق مع المطعم المسجل للضيف",
                )

            return GateDecision(
                allowed=True, reason=GateReason.RESTAURANT_GATE,
                message=f"Entry allowed to restaurant {guest_restaurant.name}",
                message_ar=f"الدخول مسموح لمطعم {guest_restaurant.display_name}",
            )

        return GateDecision(
            allowed=False, reason=GateReason.UNSUPPORTED_GATE_TYPE,
            message="Unsupported gate type",
            message_ar="نوع البوابة غير مدعوم",
        )


gate_access_policy = GateAccessPolicy()
