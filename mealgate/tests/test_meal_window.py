"""
Meal window resolution tests
"""

from datetime import datetime

import pytest

from ..models.venue import MealTime
from ..services.meal_window import MealWindowResolver, describe_meal_period, to_minutes


def window(id, start, end, is_active=True):
    return MealTime(id=id, restaurant_id="r1", name=id.title(), start_time=start, end_time=end,
                    is_active=is_active)


@pytest.fixture
def resolver():
    return MealWindowResolver()


def at(hour, minute=0, second=0, day=15):
    return datetime(2024, 1, day, hour, minute, second)


class TestToMinutes:

    def test_parses_hh_mm(self):
        assert to_minutes("00:00") == 0
        assert to_minutes("08:30") == 510
        assert to_minutes("23:59") == 1439

    @pytest.mark.parametrize("value", ["", "8", "24:00", "12:60", "ab:cd", None])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            to_minutes(value)


class TestResolve:
    """Window matching"""

    def test_inclusive_bounds(self, resolver):
        breakfast = window("breakfast", "08:00", "10:00")
        assert resolver.resolve(at(8, 0), [breakfast]) == breakfast
        assert resolver.resolve(at(10, 0, 45), [breakfast]) == breakfast
        assert resolver.resolve(at(7, 59), [breakfast]) is None
        assert resolver.resolve(at(10, 1), [breakfast]) is None

    def test_overnight_window(self, resolver):
        night = window("night", "22:00", "06:00")
        assert resolver.resolve(at(23, 30), [night]) == night
        assert resolver.resolve(at(2, 0), [night]) == night
        assert resolver.resolve(at(12, 0), [night]) is None

    def test_inactive_windows_ignored(self, resolver):
        lunch = window("lunch", "12:00", "15:00", is_active=False)
        assert resolver.resolve(at(12, 30), [lunch]) is None

    def test_malformed_window_skipped(self, resolver, caplog):
        """Bad bounds never match and never raise"""
        broken = window("broken", "noon", "15:00")
        lunch = window("lunch", "12:00", "15:00")
        assert resolver.resolve(at(12, 30), [broken, lunch]) == lunch
        assert "invalid bounds" in caplog.text

    def test_narrowest_window_wins(self, resolver):
        all_day = window("all_day", "06:00", "22:00")
        lunch = window("lunch", "12:00", "15:00")
        assert resolver.resolve(at(12, 30), [all_day, lunch]) == lunch

    def test_equal_width_keeps_source_order(self, resolver):
        first = window("first", "12:00", "14:00")
        second = window("second", "13:00", "15:00")
        assert resolver.resolve(at(13, 30), [first, second]) == first
        assert resolver.resolve(at(13, 30), [second, first]) == second

    def test_no_windows(self, resolver):
        assert resolver.resolve(at(12, 0), []) is None


class TestWindowBounds:
    """Absolute window occurrence"""

    def test_same_day_window(self, resolver):
        start, end = resolver.window_bounds(at(9, 15), window("breakfast", "08:00", "10:00"))
        assert start == at(8, 0)
        assert end == datetime(2024, 1, 15, 10, 0, 59, 999999)

    def test_overnight_before_midnight(self, resolver):
        start, end = resolver.window_bounds(at(23, 30), window("night", "22:00", "06:00"))
        assert start == at(22, 0)
        assert end.date() == datetime(2024, 1, 16).date()
        assert (end.hour, end.minute) == (6, 0)

    def test_overnight_after_midnight(self, resolver):
        """The occurrence that started yesterday evening"""
        start, end = resolver.window_bounds(at(2, 0), window("night", "22:00", "06:00"))
        assert start == at(22, 0, day=14)
        assert (end.day, end.hour, end.minute) == (15, 6, 0)


@pytest.mark.parametrize("hour,label", [
    (7, "Breakfast"),
    (13, "Lunch"),
    (19, "Dinner"),
    (23, "Outside meal times"),
    (3, "Outside meal times"),
])
def test_describe_meal_period(hour, label):
    assert label in describe_meal_period(at(hour))
