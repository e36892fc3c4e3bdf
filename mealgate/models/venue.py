"""
Restaurant, meal time and gate models
"""

from pydantic import Field
from typing import List, Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin


class GateType(str, Enum):
    """Gate type enum"""
    MAIN = "MAIN"              # admits every valid card
    RESTAURANT = "RESTAURANT"  # admits guests of the linked restaurants only


class Restaurant(BaseEntity, TimestampMixin):
    """Restaurant"""
    id: str = Field(..., description="Restaurant ID")
    name: str = Field(..., description="Name")
    name_ar: Optional[str] = Field(None, description="Arabic name")
    location: Optional[str] = Field(None, description="Location")
    gate_id: Optional[str] = Field(None, description="Linked gate ID")
    is_active: bool = Field(True, description="Active flag")

    @property
    def display_name(self) -> str:
        return self.name_ar or self.name


class MealTime(BaseEntity, TimestampMixin):
    """Meal window of a restaurant, HH:MM local wall-clock bounds"""
    id: str = Field(..., description="Meal time ID")
    restaurant_id: str = Field(..., description="Owning restaurant ID")
    name: str = Field(..., description="Name")
    name_ar: Optional[str] = Field(None, description="Arabic name")
    start_time: str = Field(..., description="Start HH:MM")
    end_time: str = Field(..., description="End HH:MM")
    is_active: bool = Field(True, description="Active flag")


class Gate(BaseEntity, TimestampMixin):
    """Physical gate"""
    id: str = Field(..., description="Gate ID")
    name: str = Field(..., description="Name")
    name_ar: Optional[str] = Field(None, description="Arabic name")
    # free text: unknown types are stored as-is and denied by the gate policy
    gate_type: str = Field(..., description="Gate type")
    location: Optional[str] = Field(None, description="Location")
    is_active: bool = Field(True, description="Active flag")
    restaurant_ids: List[str] = Field(default_factory=list, description="Linked restaurant IDs")
