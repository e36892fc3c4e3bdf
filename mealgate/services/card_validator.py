"""
Card validation pipeline
Turns a card, its guest and the restaurant's meal windows into one terminal
scan outcome.

Steps, first failure wins:
1. card exists                    -> CARD_NOT_FOUND
2. card active                    -> CARD_DISABLED
3. card inside its validity range -> CARD_EXPIRED
4. guest active                   -> GUEST_INACTIVE
5. guest not checked out          -> GUEST_CHECKOUT
6. now inside a meal window       -> OUTSIDE_MEAL_TIME
7. window on the card allow-list  -> MEAL_NOT_ALLOWED
8. window not consumed yet        -> MEAL_ALREADY_CONSUMED
9. usage below max_usage          -> MEAL_LIMIT_EXCEEDED
otherwise SUCCESS. Steps 6-8 only apply when the card needs a meal window.
"""

from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set

from ..models.guest import Card, Guest
from ..models.scan import NOT_YET_VALID_MESSAGES, ScanCode, ScanOutcome
from ..models.venue import MealTime
from .meal_window import MealWindowResolver, meal_window_resolver
from .usage_ledger import UsageLedger


class AllowedWindows:
    """
    Which meal windows a card may use

    Composes the restaurant's active windows, the card's bound window and the
    card's explicit allow-list. An empty allow-list means every window is allowed.
    """

    def __init__(self, candidates: List[MealTime], restricted_ids: Optional[Set[str]],
                 requires_window: bool):
        self.candidates = candidates
        self.restricted_ids = restricted_ids
        self.requires_window = requires_window

    @classmethod
    def compose(cls, card: Optional[Card], restaurant_windows: Iterable[MealTime],
                bound_window: Optional[MealTime] = None,
                allowed_ids: Iterable[str] = ()) -> "AllowedWindows":
        candidates = [w for w in restaurant_windows if w.is_active]
        if (bound_window is not None and bound_window.is_active
                and all(w.id != bound_window.id for w in candidates)):
            candidates.append(bound_window)
        allowed = set(allowed_ids)
        requires = bool(candidates) or bool(card is not None and card.meal_time_id)
        return cls(candidates, allowed or None, requires)

    @classmethod
    def unrestricted(cls) -> "AllowedWindows":
        return cls([], None, False)

    def permits(self, window_id: str) -> bool:
        return self.restricted_ids is None or window_id in self.restricted_ids

    @property
    def window_ids(self) -> Set[str]:
        """Ids of the candidate windows this card may actually use"""
        return {w.id for w in self.candidates if self.permits(w.id)}


class EvaluationState:
    """Inputs of one evaluation plus the window resolved along the way"""

    def __init__(self, card: Optional[Card], guest: Optional[Guest],
                 windows: AllowedWindows, now: datetime):
        self.card = card
        self.guest = guest
        self.windows = windows
        self.now = now
        self.resolved: Optional[MealTime] = None


Step = Callable[[EvaluationState], Optional[ScanOutcome]]


class CardValidator:
    """Ordered card validation pipeline"""

    def __init__(self, ledger: Optional[UsageLedger] = None,
                 resolver: Optional[MealWindowResolver] = None):
        self.ledger = ledger or UsageLedger()
        self.resolver = resolver or meal_window_resolver
        self.steps: List[Step] = [
            self._check_card_found,
            self._check_card_enabled,
            self._check_card_validity,
            self._check_guest_active,
            self._check_guest_checkout,
            self._check_meal_time,
            self._check_meal_allowed,
            self._check_meal_not_consumed,
            self._check_usage_limit,
        ]

    def evaluate(self, card: Optional[Card], guest: Optional[Guest],
                 windows: AllowedWindows, now: datetime) -> ScanOutcome:
        """
        Evaluate one scan

        Args:
            card: scanned card, None if the payload matched no card
            guest: card holder
            windows: meal windows the card may use
            now: scan time, local wall clock

        Returns:
            ScanOutcome: terminal outcome, carrying the resolved window when one was found
        """
        state = EvaluationState(card, guest, windows, now)
        for step in self.steps:
            outcome = step(state)
            if outcome is not None:
                return outcome
        return ScanOutcome.of(ScanCode.SUCCESS, state.resolved)

    def _check_card_found(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if state.card is None:
            return ScanOutcome.of(ScanCode.CARD_NOT_FOUND)
        return None

    def _check_card_enabled(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if not state.card.is_active:
            return ScanOutcome.of(ScanCode.CARD_DISABLED)
        return None

    def _check_card_validity(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if state.now > state.card.valid_to:
            return ScanOutcome.of(ScanCode.CARD_EXPIRED)
        if state.now < state.card.valid_from:
            return ScanOutcome.of(ScanCode.CARD_EXPIRED, messages=NOT_YET_VALID_MESSAGES)
        return None

    def _check_guest_active(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if state.guest is None or not state.guest.is_active:
            return ScanOutcome.of(ScanCode.GUEST_INACTIVE)
        return None

    def _check_guest_checkout(self, state: EvaluationState) -> Optional[ScanOutcome]:
        expired = state.guest.expired_date
        if expired is not None and state.now > expired:
            return ScanOutcome.of(ScanCode.GUEST_CHECKOUT)
        return None

    def _check_meal_time(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if not state.windows.requires_window:
            return None
        state.resolved = self.resolver.resolve(state.now, state.windows.candidates)
        if state.resolved is None:
            return ScanOutcome.of(ScanCode.OUTSIDE_MEAL_TIME)
        return None

    def _check_meal_allowed(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if state.resolved is not None and not state.windows.permits(state.resolved.id):
            return ScanOutcome.of(ScanCode.MEAL_NOT_ALLOWED, state.resolved)
        return None

    def _check_meal_not_consumed(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if state.resolved is None:
            return None
        start, end = self.resolver.window_bounds(state.now, state.resolved)
        if self.ledger.has_consumed_window(state.card.id, start, end):
            return ScanOutcome.of(ScanCode.MEAL_ALREADY_CONSUMED, state.resolved)
        return None

    def _check_usage_limit(self, state: EvaluationState) -> Optional[ScanOutcome]:
        if not self.ledger.within_usage_limit(state.card):
            return ScanOutcome.of(ScanCode.MEAL_LIMIT_EXCEEDED, state.resolved)
        return None
