"""Controlled vocabulary for the canonical notes string.

Every stored record carries a flat ``key=value; flag; ...`` string. Keys come
from ``CANONICAL_ORDER`` and appear in that order, with the version token
first. Keys with a validator only accept values from their controlled set or
format; keys without one accept anything.
"""

from __future__ import annotations

import re
from typing import Any, Callable

NOTES_VERSION = "2.1"
VERSION_KEY = "notes_v"

MEALS = ("breakfast", "lunch", "dinner", "snack", "late")

CATEGORIES = (
    "grain",  # oats, rice, cereal, toast, pasta
    "protein",  # eggs, chicken, fish, tofu
    "dairy",
    "non_dairy",
    "veg",
    "fruit",
    "caffeine",
    "sweet",
    "fat",  # butter, oil, nuts
)

PREP_METHODS = (
    "raw",
    "baked",
    "fried",
    "boiled",
    "steamed",
    "roasted",
    "grilled",
    "sauteed",
    "iced",
    "hot",
)

CUISINES = (
    "american",
    "mexican",
    "italian",
    "indian",
    "japanese",
    "thai",
    "chinese",
    "mediterranean",
    "other",
)

CONTEXTS = ("default", "on_the_go", "social", "post_workout", "late", "travel")

CONFIDENCE_SOURCES = ("rules", "llm", "merged", "manual")

TIME_APPROX = ("morning", "midday", "afternoon", "evening", "night", "late")

CANONICAL_ORDER: tuple[str, ...] = (
    # Version (always first)
    "notes_v",
    # Time & meal
    "meal",
    "time",
    "time≈",
    # Classification
    "category",
    "prep",
    "cuisine",
    "context",
    # Portions
    "size",
    "portion",
    "portion_g",
    "portion_ml",
    # Brands
    "brand",
    "brand_variant",
    "variant",
    # Flags
    "dairy",
    "non_dairy",
    "caffeine",
    "decaf",
    # Sides & additions
    "sides",
    "sweetener",
    # Symptoms
    "severity",
    "bristol",
    "symptom_type",
    # Metadata
    "confidence",
    "suspected_trigger",
    # Freeform notes
    "severity_note",
    "bristol_note",
    "meal_time_note",
    # System flags (last)
    "deleted",
    "photo",
    "photo1",
    "photo2",
    "photo3",
)

UNKNOWN_POSITION = len(CANONICAL_ORDER)

_POSITIONS = {key: index for index, key in enumerate(CANONICAL_ORDER)}
_TIME_FORMAT = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


def _int_in_range(low: int, high: int) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        if isinstance(value, bool):
            return False
        try:
            number = int(str(value).strip())
        except ValueError:
            return False
        return low <= number <= high

    return check


VALIDATORS: dict[str, Callable[[Any], bool]] = {
    "meal": lambda v: v in MEALS,
    "category": lambda v: v in CATEGORIES,
    "prep": lambda v: v in PREP_METHODS,
    "cuisine": lambda v: v in CUISINES,
    "context": lambda v: v in CONTEXTS,
    "confidence": lambda v: v in CONFIDENCE_SOURCES,
    "time≈": lambda v: v in TIME_APPROX,
    "time": lambda v: isinstance(v, str) and bool(_TIME_FORMAT.match(v)),
    "severity": _int_in_range(1, 10),
    "bristol": _int_in_range(1, 7),
}


def is_valid_value(key: str, value: Any) -> bool:
    """Check a token value against its key's validator.

    Keys without a validator (including unknown keys) accept any value.
    """
    validator = VALIDATORS.get(key)
    if validator is None:
        return True
    return validator(value)


def get_canonical_position(key: str) -> int:
    """Return the sort position for a key; unknown keys sort after all known ones."""
    return _POSITIONS.get(key, UNKNOWN_POSITION)


def is_known_key(key: str) -> bool:
    """Check if a key belongs to the canonical vocabulary."""
    return key in _POSITIONS


__all__ = [
    "CANONICAL_ORDER",
    "CATEGORIES",
    "CONFIDENCE_SOURCES",
    "CONTEXTS",
    "CUISINES",
    "MEALS",
    "NOTES_VERSION",
    "PREP_METHODS",
    "TIME_APPROX",
    "UNKNOWN_POSITION",
    "VALIDATORS",
    "VERSION_KEY",
    "get_canonical_position",
    "is_known_key",
    "is_valid_value",
]
