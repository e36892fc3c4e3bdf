"""
Scan request/response schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..models.guest import Card, CardType, Guest
from ..models.scan import ScanStatus
from ..models.venue import MealTime, Restaurant
from .common import CamelModel, PaginatedResponse


class ManualScanRequest(CamelModel):
    """Manual scan request"""
    card_data: str = Field(..., min_length=1, description="Scanned payload")
    station_id: Optional[str] = Field(None, description="Scanning station")
    scan_type: CardType = Field(CardType.QR, description="QR or RFID")


class MealTimeInfo(CamelModel):
    id: str
    name: str
    name_ar: Optional[str] = None
    start_time: str
    end_time: str

    @classmethod
    def from_model(cls, meal_time: Optional[MealTime]) -> Optional["MealTimeInfo"]:
        if meal_time is None:
            return None
        return cls(id=meal_time.id, name=meal_time.name, name_ar=meal_time.name_ar,
                   start_time=meal_time.start_time, end_time=meal_time.end_time)


class CardInfo(CamelModel):
    id: str
    card_number: str
    card_type: CardType
    valid_from: datetime
    valid_to: datetime
    usage_count: int
    max_usage: Optional[int] = None
    remaining_usage: Optional[int] = None

    @classmethod
    def from_model(cls, card: Optional[Card]) -> Optional["CardInfo"]:
        if card is None:
            return None
        return cls(id=card.id, card_number=card.card_number, card_type=card.card_type,
                   valid_from=card.valid_from, valid_to=card.valid_to,
                   usage_count=card.usage_count, max_usage=card.max_usage,
                   remaining_usage=card.remaining_usage)


class GuestInfo(CamelModel):
    id: str
    first_name: str
    last_name: str
    full_name: str
    room_number: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    nationality: Optional[str] = None

    @classmethod
    def from_model(cls, guest: Optional[Guest]) -> Optional["GuestInfo"]:
        if guest is None:
            return None
        return cls(id=guest.id, first_name=guest.first_name, last_name=guest.last_name,
                   full_name=guest.full_name, room_number=guest.room_number,
                   company=guest.company, job_title=guest.job_title,
                   nationality=guest.nationality)


class RestaurantInfo(CamelModel):
    id: str
    name: str
    name_ar: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_model(cls, restaurant: Optional[Restaurant]) -> Optional["RestaurantInfo"]:
        if restaurant is None:
            return None
        return cls(id=restaurant.id, name=restaurant.name, name_ar=restaurant.name_ar,
                   location=restaurant.location)


class ManualScanResponse(CamelModel):
    """Manual scan response"""
    success: bool
    scan_id: Optional[str] = None
    error_code: Optional[str] = None
    message: str
    message_ar: str
    card: Optional[CardInfo] = None
    guest: Optional[GuestInfo] = None
    restaurant: Optional[RestaurantInfo] = None
    matched_meal_time: Optional[MealTimeInfo] = None
    timestamp: datetime


class ScanRecord(CamelModel):
    """One row of the scan history"""
    id: str
    card_id: Optional[str] = None
    guest_name: str
    room_number: Optional[str] = None
    company: Optional[str] = None
    meal_type: Optional[str] = None
    meal_type_ar: Optional[str] = None
    meal_start_time: Optional[str] = None
    meal_end_time: Optional[str] = None
    restaurant_name: str
    restaurant_name_ar: str
    station_id: Optional[str] = None
    scan_time: datetime
    status: ScanStatus
    message: str
    message_ar: str
    error_code: Optional[str] = None
    usage_count: Optional[int] = None
    max_usage: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None


class ScanRecordPage(PaginatedResponse[ScanRecord]):
    """Scan history page"""
