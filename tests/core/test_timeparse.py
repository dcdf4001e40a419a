"""Tests for time extraction and meal-window inference."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gutlog.core.nlu.timeparse import (
    TimeExtractor,
    TimeInfo,
    current_hour,
    extract_time,
    infer_meal_time,
    resolve_zone,
)


@pytest.fixture
def extractor() -> TimeExtractor:
    return TimeExtractor()


class TestClockTimes:
    """Tests for explicit clock times."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("coffee at 10am", "10:00"),
            ("ate at 7:30 pm", "19:30"),
            ("lunch at 12pm", "12:00"),
            ("snack at 12 a.m.", "00:00"),
            ("dinner 19:45", "19:45"),
            ("at noon", "12:00"),
            ("around midnight", "00:00"),
        ],
    )
    def test_parse(self, extractor: TimeExtractor, text: str, expected: str) -> None:
        """Clock times are normalized to HH:MM."""
        assert extractor.parse_clock_time(text) == expected

    def test_dates_are_not_times(self, extractor: TimeExtractor) -> None:
        """Fractions and plain numbers are not clock times."""
        assert extractor.parse_clock_time("pain 7/10") is None
        assert extractor.parse_clock_time("bm bristol 4") is None

    def test_absolute_wins_over_relative(self, extractor: TimeExtractor) -> None:
        """A clock time is preferred over a daypart phrase."""
        info = extractor.extract("this morning at 8am")
        assert info.time == "08:00"
        assert info.source == "absolute"
        assert info.approx is None


class TestRelativeDayparts:
    """Tests for relative daypart phrases."""

    def test_this_morning(self, extractor: TimeExtractor) -> None:
        info = extractor.extract("had oatmeal this morning")
        assert info.time is None
        assert info.approx == "morning"
        assert info.meal_time == "breakfast"
        assert info.source == "relative"

    def test_late_night_beats_at_night(self, extractor: TimeExtractor) -> None:
        """Longer phrases are matched first."""
        info = extractor.extract("chips late night")
        assert info.approx == "late"
        assert info.meal_time == "dinner"

    def test_tonight(self, extractor: TimeExtractor) -> None:
        info = extractor.extract("pasta tonight")
        assert info.approx == "night"
        assert info.meal_time == "dinner"

    def test_nothing(self) -> None:
        """No time information yields a falsy TimeInfo."""
        info = extract_time("toast")
        assert info == TimeInfo()
        assert not info


class TestMealInference:
    """Tests for meal-window inference from the clock."""

    def test_naive_datetime_is_local(self) -> None:
        """Naive datetimes are used as-is."""
        assert current_hour(datetime(2026, 3, 1, 8, 15)) == 8
        assert infer_meal_time(datetime(2026, 3, 1, 8, 15)) == "breakfast"

    def test_aware_datetime_converted(self) -> None:
        """Aware datetimes are converted to the user's zone."""
        # 20:00 UTC is 12:00 in Los Angeles (PST, UTC-8)
        now = datetime(2026, 1, 15, 20, 0, tzinfo=timezone.utc)
        assert current_hour(now, "America/Los_Angeles") == 12
        assert infer_meal_time(now, "America/Los_Angeles") == "lunch"

    def test_other_zone(self) -> None:
        now = datetime(2026, 1, 15, 20, 0, tzinfo=timezone.utc)
        assert infer_meal_time(now, "Europe/London") == "dinner"

    def test_unknown_zone_falls_back(self) -> None:
        """An unknown timezone name falls back to the default zone."""
        assert str(resolve_zone("Not/AZone")) == "America/Los_Angeles"
        assert str(resolve_zone(None)) == "America/Los_Angeles"
