"""
Guest and card models
"""

from pydantic import Field
from datetime import datetime
from typing import Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin


class CardType(str, Enum):
    """Card type enum"""
    QR = "QR"
    RFID = "RFID"


class Guest(BaseEntity, TimestampMixin):
    """Hotel guest"""
    id: str = Field(..., description="Guest ID")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    nationality: Optional[str] = Field(None, description="Nationality")
    company: Optional[str] = Field(None, description="Company")
    job_title: Optional[str] = Field(None, description="Job title")
    room_number: Optional[str] = Field(None, description="Room number")
    check_in_date: Optional[datetime] = Field(None, description="Check-in date")
    expired_date: Optional[datetime] = Field(None, description="Checkout date")
    restaurant_id: Optional[str] = Field(None, description="Restaurant ID")
    is_active: bool = Field(True, description="Active flag")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Card(BaseEntity, TimestampMixin):
    """Guest access card"""
    id: str = Field(..., description="Card ID")
    guest_id: str = Field(..., description="Guest ID")
    meal_time_id: Optional[str] = Field(None, description="Bound meal time ID")
    card_type: CardType = Field(CardType.QR, description="Card type")
    card_number: str = Field(..., description="Card number")
    card_data: str = Field(..., description="Payload printed on the card")
    valid_from: datetime = Field(..., description="Valid from")
    valid_to: datetime = Field(..., description="Valid to")
    is_active: bool = Field(True, description="Active flag")
    usage_count: int = Field(0, ge=0, description="Successful scans so far")
    max_usage: Optional[int] = Field(None, ge=1, description="Usage limit, None for unlimited")

    @property
    def remaining_usage(self) -> Optional[int]:
        if self.max_usage is None:
            return None
        return max(0, self.max_usage - self.usage_count)
