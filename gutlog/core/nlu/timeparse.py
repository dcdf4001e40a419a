"""Time extraction for gutlog messages.

Handles clock times ("at 10am", "7:30 pm", "19:45"), relative dayparts
("this morning", "tonight") and meal-window inference from the current hour.
Relative dayparts are approximate and never produce a clock time.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .ontology import infer_meal_window

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Los_Angeles"

# Relative phrase → (approximate daypart, meal window)
RELATIVE_DAYPARTS: dict[str, tuple[str, str | None]] = {
    "this morning": ("morning", "breakfast"),
    "this afternoon": ("afternoon", "lunch"),
    "this evening": ("evening", "dinner"),
    "late night": ("late", "dinner"),
    "at night": ("night", "dinner"),
    "tonight": ("night", "dinner"),
    "at lunch": ("midday", "lunch"),
    "midday": ("midday", None),
}


@dataclass
class TimeInfo:
    """Time information found in a message.

    Attributes:
        time: Clock time as HH:MM, when one was stated
        approx: Approximate daypart (morning, midday, ...) for relative phrases
        meal_time: Meal window implied by a relative phrase
        source: How the information was found (absolute, relative)
    """

    time: str | None = None
    approx: str | None = None
    meal_time: str | None = None
    source: str | None = None

    def __bool__(self) -> bool:
        return self.source is not None


class TimeExtractor:
    """Extract clock times and relative dayparts from text."""

    PATTERNS = {
        # "10am", "7:30 pm", "at 9 a.m."
        "twelve_hour": re.compile(
            r"\b(1[0-2]|0?[1-9])(?::([0-5]\d))?\s*([ap])\.?\s*m\b\.?",
            re.IGNORECASE,
        ),
        # "19:45", "07:15"
        "twenty_four_hour": re.compile(r"(?<![\d/])([01]?\d|2[0-3]):([0-5]\d)(?![\d/])"),
        "noon": re.compile(r"\b(?:at\s+)?noon\b", re.IGNORECASE),
        "midnight": re.compile(r"\b(?:at\s+)?midnight\b", re.IGNORECASE),
    }

    def __init__(self) -> None:
        self._sorted_dayparts = sorted(
            RELATIVE_DAYPARTS.items(), key=lambda x: len(x[0]), reverse=True
        )

    def parse_clock_time(self, text: str) -> str | None:
        """Return an explicit clock time as HH:MM, or None."""
        match = self.PATTERNS["twelve_hour"].search(text)
        if match:
            hour = int(match.group(1)) % 12
            minute = int(match.group(2) or 0)
            if match.group(3).lower() == "p":
                hour += 12
            return f"{hour:02d}:{minute:02d}"

        match = self.PATTERNS["twenty_four_hour"].search(text)
        if match:
            return f"{int(match.group(1)):02d}:{int(match.group(2)):02d}"

        if self.PATTERNS["noon"].search(text):
            return "12:00"
        if self.PATTERNS["midnight"].search(text):
            return "00:00"
        return None

    def parse_relative(self, text: str) -> tuple[str, str | None] | None:
        """Return (approx, meal_time) for a relative daypart phrase, or None."""
        lowered = text.lower()
        for phrase, result in self._sorted_dayparts:
            if re.search(rf"\b{re.escape(phrase)}\b", lowered):
                return result
        return None

    def extract(self, text: str) -> TimeInfo:
        """Extract time information, preferring an explicit clock time."""
        clock = self.parse_clock_time(text)
        if clock:
            return TimeInfo(time=clock, source="absolute")

        relative = self.parse_relative(text)
        if relative:
            approx, meal_time = relative
            return TimeInfo(approx=approx, meal_time=meal_time, source="relative")

        return TimeInfo()


def resolve_zone(tz: str | None) -> ZoneInfo:
    """Return the ZoneInfo for a name, falling back to the default zone."""
    try:
        return ZoneInfo(tz or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Unknown timezone {tz!r}, using {DEFAULT_TIMEZONE}: {e}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def current_hour(now: datetime | None = None, tz: str | None = None) -> int:
    """Hour of day (0-23) in the user's timezone.

    Naive datetimes are taken to already be local time.
    """
    if now is None:
        return datetime.now(resolve_zone(tz)).hour
    if now.tzinfo is not None:
        return now.astimezone(resolve_zone(tz)).hour
    return now.hour


def infer_meal_time(now: datetime | None = None, tz: str | None = None) -> str:
    """Infer the meal window from the current time of day."""
    return infer_meal_window(current_hour(now, tz))


_extractor = TimeExtractor()


def extract_time(text: str) -> TimeInfo:
    """Extract time information using the default extractor."""
    return _extractor.extract(text)


__all__ = [
    "DEFAULT_TIMEZONE",
    "RELATIVE_DAYPARTS",
    "TimeExtractor",
    "TimeInfo",
    "current_hour",
    "extract_time",
    "infer_meal_time",
    "resolve_zone",
]
