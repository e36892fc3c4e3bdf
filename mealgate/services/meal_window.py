"""
Meal window resolution
Finds which meal window of a restaurant contains a given wall-clock time.

Rules:
- times are HH:MM local wall clock, compared at minute resolution
- end >= start: inclusive window start <= now <= end
- end < start: overnight window, matches now >= start or now <= end
- overlapping windows: the narrowest one wins, then source order
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from ..models.venue import MealTime

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: str) -> int:
    """'HH:MM' -> minutes since midnight"""
    try:
        hours_text, minutes_text = value.strip().split(":")[:2]
        hours, minutes = int(hours_text), int(minutes_text)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time of day: {value!r}")
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def window_contains(start: int, end: int, now: int) -> bool:
    if end >= start:
        return start <= now <= end
    return now >= start or now <= end


def window_width(start: int, end: int) -> int:
    if end >= start:
        return end - start
    return MINUTES_PER_DAY - start + end


class MealWindowResolver:
    """Meal window resolver, pure and stateless"""

    def matching(self, now: datetime, windows: Iterable[MealTime]) -> List[MealTime]:
        """All active windows containing now, in source order"""
        current = minute_of_day(now)
        matches = []
        for window in windows:
            if not window.is_active:
                continue
            try:
                start, end = to_minutes(window.start_time), to_minutes(window.end_time)
            except ValueError:
                logger.warning("Skipping meal time %s with invalid bounds %r-%r",
                               window.id, window.start_time, window.end_time)
                continue
            if window_contains(start, end, current):
                matches.append(window)
        return matches

    def resolve(self, now: datetime, windows: Iterable[MealTime]) -> Optional[MealTime]:
        """
        The window containing now

        Returns:
            Optional[MealTime]: narrowest matching window, None when outside every window
        """
        matches = self.matching(now, windows)
        if not matches:
            return None
        # min() keeps the first of equally narrow windows
        return min(matches, key=lambda w: window_width(to_minutes(w.start_time), to_minutes(w.end_time)))

    def window_bounds(self, now: datetime, window: MealTime) -> Tuple[datetime, datetime]:
        """
        Absolute bounds of the window occurrence containing now

        The end is inclusive up to the last microsecond of its end minute.
        Overnight windows end on the calendar day after they start: the
        occurrence that began yesterday when now is past midnight.
        """
        start, end = to_minutes(window.start_time), to_minutes(window.end_time)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        start_day = midnight
        end_day = midnight
        if end < start:
            if minute_of_day(now) >= start:
                end_day = midnight + timedelta(days=1)
            else:
                start_day = midnight - timedelta(days=1)

        start_at = start_day + timedelta(minutes=start)
        end_at = end_day + timedelta(minutes=end, seconds=59, microseconds=999999)
        return start_at, end_at


def describe_meal_period(now: datetime) -> str:
    """Bilingual meal period label by hour, used when no configured window matched"""
    hour = now.hour
    if 6 <= hour < 11:
        return "الإفطار / Breakfast"
    if 11 <= hour < 16:
        return "الغداء / Lunch"
    if 16 <= hour < 22:
        return "العشاء / Dinner"
    return "خارج أوقات الوجبات / Outside meal times"


meal_window_resolver = MealWindowResolver()
