"""
Card issuing schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..models.guest import Card, CardType
from .common import CamelModel


class CardIssueRequest(CamelModel):
    """Card issue request"""
    guest_id: str = Field(..., description="Guest ID")
    meal_time_id: Optional[str] = Field(None, description="Bound meal time ID")
    card_type: CardType = Field(CardType.QR, description="QR or RFID")
    valid_from: datetime = Field(..., description="Valid from")
    valid_to: datetime = Field(..., description="Valid to")
    max_usage: Optional[int] = Field(None, ge=1, description="Usage limit, omit for unlimited")
    allowed_meal_time_ids: List[str] = Field(default_factory=list, description="Meal allow-list, empty for all")
    is_active: bool = Field(True, description="Active flag")


class CardResponse(CamelModel):
    """Issued card"""
    id: str
    guest_id: str
    meal_time_id: Optional[str] = None
    card_type: CardType
    card_number: str
    card_data: str
    valid_from: datetime
    valid_to: datetime
    is_active: bool
    usage_count: int
    max_usage: Optional[int] = None
    allowed_meal_time_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_model(cls, card: Card, allowed_meal_time_ids: List[str]) -> "CardResponse":
        return cls(
            id=card.id,
            guest_id=card.guest_id,
            meal_time_id=card.meal_time_id,
            card_type=card.card_type,
            card_number=card.card_number,
            card_data=card.card_data,
            valid_from=card.valid_from,
            valid_to=card.valid_to,
            is_active=card.is_active,
            usage_count=card.usage_count,
            max_usage=card.max_usage,
            allowed_meal_time_ids=allowed_meal_time_ids,
        )
