"""
Card service
Issues guest cards with an encoded QR payload and renders printable codes.
"""

import logging
from typing import List, Optional

from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import (
    CardNotFoundError, GuestInactiveError, GuestNotFoundError,
    MealTimeInactiveError, MealTimeNotFoundError, ValidationError
)
from ..models.guest import Card, Guest
from ..models.payload import CardContext, MealWindowPayload
from ..models.venue import MealTime, Restaurant
from ..schemas.card import CardIssueRequest, CardResponse
from .qr_codec import QrCodec, qr_codec
from .scan_store import ScanStore, new_id

logger = logging.getLogger(__name__)


class CardService:
    """Card issuing service"""

    def __init__(self, db: Optional[DatabaseManager] = None, codec: Optional[QrCodec] = None):
        self.db = db or db_manager
        self.store = ScanStore(self.db)
        self.codec = codec or qr_codec

    def issue_card(self, request: CardIssueRequest) -> CardResponse:
        """
        Issue a new card for a guest

        Args:
            request: guest, optional bound meal time, validity range, usage limit and allow-list

        Returns:
            CardResponse: the stored card including its encoded payload

        Raises:
            GuestNotFoundError / GuestInactiveError: guest missing or inactive
            MealTimeNotFoundError / MealTimeInactiveError: bound or allowed meal time invalid
            ValidationError: validity range is empty
        """
        if request.valid_to <= request.valid_from:
            raise ValidationError("validTo must be after validFrom",
                                  details={"valid_from": request.valid_from.isoformat(),
                                           "valid_to": request.valid_to.isoformat()})

        with self.db.transaction():
            guest = self.store.get_guest(request.guest_id)
            if guest is None:
                raise GuestNotFoundError("Guest not found", details={"guest_id": request.guest_id})
            if not guest.is_active:
                raise GuestInactiveError("Guest is not active", details={"guest_id": request.guest_id})

            bound = self._active_meal_time(request.meal_time_id) if request.meal_time_id else None
            allowed = [self._active_meal_time(mid) for mid in dict.fromkeys(request.allowed_meal_time_ids)]
            restaurant = self.store.get_restaurant(guest.restaurant_id) if guest.restaurant_id else None

            card_id = new_id()
            card_number = self.codec.generate_card_number(request.card_type)
            payload = self.codec.encode(self._card_context(
                card_id, card_number, request, guest, restaurant,
                self._printed_windows(allowed, bound, restaurant),
            ))

            card = Card(
                id=card_id,
                guest_id=guest.id,
                meal_time_id=bound.id if bound else None,
                card_type=request.card_type,
                card_number=card_number,
                card_data=payload,
                valid_from=request.valid_from,
                valid_to=request.valid_to,
                is_active=request.is_active,
                usage_count=0,
                max_usage=request.max_usage,
            )
            self.store.insert_card(card)
            self.store.set_allowed_meals(card.id, [w.id for w in allowed])

        logger.info("Issued %s card %s for guest %s", card.card_type.value, card.card_number, guest.id)
        return CardResponse.from_model(card, [w.id for w in allowed])

    def qr_png(self, card_id: str) -> bytes:
        """Render a stored card's payload as a PNG"""
        card = self.store.get_card(card_id)
        if card is None:
            raise CardNotFoundError("Card not found", details={"card_id": card_id})
        return self.codec.render_png(card.card_data)

    def _active_meal_time(self, meal_time_id: str) -> MealTime:
        meal_time = self.store.get_meal_time(meal_time_id)
        if meal_time is None:
            raise MealTimeNotFoundError("Meal time not found", details={"meal_time_id": meal_time_id})
        if not meal_time.is_active:
            raise MealTimeInactiveError("Meal time is not active", details={"meal_time_id": meal_time_id})
        return meal_time

    def _printed_windows(self, allowed: List[MealTime], bound: Optional[MealTime],
                         restaurant: Optional[Restaurant]) -> List[MealTime]:
        """Windows printed on the card: allow-list, else the bound window, else the restaurant's"""
        if allowed:
            return allowed
        if bound is not None:
            return [bound]
        if restaurant is not None:
            return self.store.list_meal_times(restaurant.id)
        return []

    @staticmethod
    def _card_context(card_id: str, card_number: str, request: CardIssueRequest, guest: Guest,
                      restaurant: Optional[Restaurant], windows: List[MealTime]) -> CardContext:
        return CardContext(
            card_id=card_id,
            card_number=card_number,
            card_type=request.card_type,
            guest_id=guest.id,
            guest_name=guest.full_name,
            job_title=guest.job_title or "",
            company=guest.company or "",
            nationality=guest.nationality or "",
            room_number=guest.room_number or "",
            restaurant_name=restaurant.name if restaurant else "",
            restaurant_location=(restaurant.location or "") if restaurant else "",
            meal_windows=[
                MealWindowPayload(id=w.id, name=w.name, start_time=w.start_time, end_time=w.end_time)
                for w in windows
            ],
            valid_from=request.valid_from,
            valid_to=request.valid_to,
            max_usage=request.max_usage,
            usage_count=0,
        )


def get_card_service() -> CardService:
    """FastAPI dependency"""
    return CardService()
