"""
Card payload models
Everything a printed card carries, as reconstructed by the QR codec.
"""

import time
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from enum import Enum
from .guest import CardType


class PayloadFormat(str, Enum):
    """Which schema a payload was read from"""
    COMPACT = "COMPACT"  # short-key JSON printed by this system
    LEGACY = "LEGACY"    # {id, guestId, cardNumber, type, expiry, meals}
    BARE = "BARE"        # plain card number


class MealWindowPayload(BaseModel):
    """Meal window as printed on the card; legacy cards carry the id only"""
    id: str
    name: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class CardContext(BaseModel):
    """Full card context carried by a QR payload"""
    card_id: str = ""
    card_number: str = ""
    card_type: CardType = CardType.QR
    guest_id: Optional[str] = None
    guest_name: str = ""
    job_title: str = ""
    company: str = ""
    nationality: str = ""
    room_number: str = ""
    restaurant_name: str = ""
    restaurant_location: str = ""
    meal_windows: List[MealWindowPayload] = Field(default_factory=list)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    max_usage: Optional[int] = None
    usage_count: int = 0
    generated_at: int = Field(default_factory=lambda: int(time.time()))
    format: PayloadFormat = PayloadFormat.COMPACT

    @property
    def meal_time_ids(self) -> List[str]:
        return [window.id for window in self.meal_windows]
