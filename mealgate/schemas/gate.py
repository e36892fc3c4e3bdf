"""
Gate scan schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..models.guest import CardType
from .common import CamelModel


class GateScanRequest(CamelModel):
    """Gate scan request"""
    card_data: str = Field(..., min_length=1, description="Scanned payload")
    scan_type: CardType = Field(CardType.QR, description="QR or RFID")
    restaurant_id: Optional[str] = Field(None, description="Restaurant requested by the station")


class MealCount(CamelModel):
    """Usage counters; unlimited cards report a display sentinel"""
    used: int
    total: int
    remaining: int


class GateScanData(CamelModel):
    guest_id: Optional[str] = None
    guest_name: Optional[str] = None
    card_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    restaurant_name: Optional[str] = None
    gate_id: str
    gate_name: str
    meal_count: Optional[MealCount] = None
    current_meal_time: str
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    allowed_meal_times: List[str] = Field(default_factory=list)


class GateScanResponse(CamelModel):
    """Gate scan response"""
    success: bool
    result: str = Field(..., description="ALLOWED, DENIED or ERROR")
    scan_id: Optional[str] = None
    error_code: Optional[str] = None
    reason_code: Optional[str] = None
    message: str
    message_ar: str
    data: Optional[GateScanData] = None
    timestamp: datetime
