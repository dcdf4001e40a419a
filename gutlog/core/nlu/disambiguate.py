"""Disambiguation of low-confidence or ambiguous parse results.

Slot normalization (item, severity, meal_time) runs whenever the slot is
present. Intent re-resolution only runs when the intent is "other" or the
confidence is below ``ParseConfidence.DISAMBIGUATE_BELOW``. Confidence is
never lowered here.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from .ontology import contains_synonym, normalize_text
from .taxonomy import (
    CLARIFICATION_NEEDED,
    Intent,
    ParseConfidence,
    ParseResult,
    critical_slots_for,
)
from .timeparse import current_hour

if TYPE_CHECKING:
    from .lexicon import UserContext

logger = logging.getLogger(__name__)

# Items that are genuinely either; resolved by this table alone
AMBIGUOUS_ITEM_DEFAULTS: dict[str, str] = {
    "coffee": "drink",
    "soup": "food",
    "smoothie": "drink",
    "milk": "drink",
}

# Recent items that make a bare "coffee" mean the cake
COFFEE_CAKE_HINTS = ("cake", "muffin")

FOOD_KEYWORDS: list[str] = [
    "salad", "sandwich", "pizza", "pasta", "rice", "bread", "cereal", "oatmeal",
    "stew", "curry", "stir fry", "burger", "taco", "burrito", "wrap", "roll",
    "bagel", "muffin", "cake", "cookie", "cracker", "crackers", "chip", "chips",
    "nut", "nuts", "seed", "fruit", "vegetable", "vegetables", "meat", "fish",
    "chicken", "beef", "pork", "lamb", "egg", "eggs", "cheese", "yogurt",
    "ice cream", "pudding", "toast", "noodles", "sushi",
]

DRINK_KEYWORDS: list[str] = [
    "water", "tea", "juice", "soda", "beer", "wine", "cocktail", "shake", "pop",
    "cola", "lemonade", "iced tea", "hot chocolate", "cocoa", "espresso", "latte",
    "cappuccino", "americano", "frappuccino", "chai", "matcha", "herbal tea",
    "green tea", "black tea", "white tea", "oolong", "kombucha",
]

SYMPTOM_KEYWORDS: list[str] = [
    "pain", "ache", "burning", "cramping", "cramps", "nausea", "bloating",
    "bloated", "gas", "reflux", "heartburn",
]

BM_KEYWORDS: list[str] = ["bm", "bowel movement", "poop", "poo", "stool", "bristol"]

# Severity words checked before any digits in the value
SEVERITY_WORDS: dict[str, int] = {
    "none": 1,
    "minimal": 1,
    "very mild": 2,
    "mild": 3,
    "slight": 3,
    "low": 3,
    "moderate": 5,
    "moderately": 5,
    "medium": 5,
    "severe": 8,
    "high": 8,
    "very severe": 9,
    "extreme": 10,
    "unbearable": 10,
}
DEFAULT_SEVERITY = 5

MEAL_WINDOWS = ("breakfast", "lunch", "dinner", "snack")

MEAL_PHRASES: dict[str, str] = {
    "morning": "breakfast",
    "early": "breakfast",
    "brunch": "breakfast",
    "brekkie": "breakfast",
    "midday": "lunch",
    "noon": "lunch",
    "afternoon": "lunch",
    "evening": "dinner",
    "supper": "dinner",
    "tonight": "dinner",
    "night": "dinner",
    "late night": "dinner",
    "late": "dinner",
    "snacks": "snack",
    "snacking": "snack",
}

# Intent priority for breaking exact confidence ties (higher wins)
INTENT_PRIORITY: dict[str, int] = {
    "food": 10,
    "drink": 9,
    "symptom": 8,
    "reflux": 7,
    "bm": 6,
    "checkin": 4,
    "other": 1,
}


def classify_item(item: str | None) -> str | None:
    """Classify an item as "food" or "drink".

    Food keywords are checked first, then drink keywords, then the
    ambiguous-item defaults (coffee and smoothie and milk are drinks, soup
    is food).
    """
    if not item:
        return None
    if contains_synonym(item, FOOD_KEYWORDS):
        return "food"
    if contains_synonym(item, DRINK_KEYWORDS):
        return "drink"
    for word, kind in AMBIGUOUS_ITEM_DEFAULTS.items():
        if contains_synonym(item, [word]):
            return kind
    return None


def resolve_ambiguous_item(item: str | None, context: "UserContext | None" = None) -> str | None:
    """Rename an ambiguous item using what the user logged recently.

    A bare "coffee" becomes "coffee cake" when a recent item mentions cake
    or a muffin. Anything else comes back unchanged.
    """
    if not item or context is None or not context.recent_items:
        return item
    if normalize_text(item) != "coffee":
        return item
    recent = [normalize_text(r) for r in context.recent_items if isinstance(r, str)]
    if any(hint in r for r in recent for hint in COFFEE_CAKE_HINTS):
        return "coffee cake"
    return item


_SORTED_SEVERITY_WORDS = sorted(SEVERITY_WORDS.items(), key=lambda x: len(x[0]), reverse=True)


def severity_from_words(value: Any) -> int | None:
    """Look up a severity word ("mild", "very severe") in a value.

    Longer phrases are checked first. Returns None when no word matches.
    """
    text = normalize_text(str(value)) if value is not None else ""
    for word, severity in _SORTED_SEVERITY_WORDS:
        if re.search(rf"\b{re.escape(word)}\b", text):
            return severity
    return None


def normalize_severity(value: Any) -> int:
    """Normalize a severity value to an int in [1, 10].

    Words win over digits ("mild 7" is 3); with no signal at all the
    result is 5, meaning moderate.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(1, min(10, int(value)))

    worded = severity_from_words(value)
    if worded is not None:
        return worded

    text = normalize_text(str(value)) if value is not None else ""
    match = re.search(r"\d+", text)
    if match:
        return max(1, min(10, int(match.group())))
    return DEFAULT_SEVERITY


def _meal_from_hour(hour: int) -> str:
    if 6 <= hour < 11:
        return "breakfast"
    if 11 <= hour < 17:
        return "lunch"
    return "dinner"


def normalize_meal_time(
    value: Any, now: datetime | None = None, tz: str | None = None
) -> str | None:
    """Map a loose meal-time phrase onto breakfast, lunch, dinner or snack.

    Phrases with no meal meaning ("earlier", "today") fall back to the
    current hour of day.
    """
    if value is None:
        return None
    text = normalize_text(str(value))
    if not text:
        return None
    if text in MEAL_WINDOWS:
        return text

    for phrase in sorted(MEAL_PHRASES, key=len, reverse=True):
        if re.search(rf"\b{re.escape(phrase)}\b", text):
            return MEAL_PHRASES[phrase]
    for window in MEAL_WINDOWS:
        if re.search(rf"\b{window}\b", text):
            return window

    return _meal_from_hour(current_hour(now, tz))


def _slot_text(slots: dict[str, Any]) -> str:
    return " ".join(str(v) for v in slots.values() if isinstance(v, (str, int)) and not isinstance(v, bool))


def _find_intent_evidence(slots: dict[str, Any], context: "UserContext | None" = None) -> Intent | None:
    """Scan slot values for food, drink, symptom, then bm evidence."""
    text = normalize_text(_slot_text(slots))
    kind = classify_item(resolve_ambiguous_item(slots.get("item"), context))
    if kind == "food" or contains_synonym(text, FOOD_KEYWORDS):
        return Intent.FOOD
    if kind == "drink" or contains_synonym(text, DRINK_KEYWORDS):
        return Intent.DRINK
    if slots.get("symptom_type") or contains_synonym(text, SYMPTOM_KEYWORDS):
        return Intent.SYMPTOM
    if slots.get("bristol") is not None or contains_synonym(text, BM_KEYWORDS):
        return Intent.BM
    return None


def resolve_intent(result: ParseResult, context: "UserContext | None" = None) -> ParseResult:
    """Reassign a weak or "other" intent from slot evidence.

    Results that are confident and classified come back unchanged, as do
    results with no usable evidence. The context's recent items can turn an
    ambiguous item from one kind into the other.
    """
    if result.intent != Intent.OTHER and result.confidence >= ParseConfidence.DISAMBIGUATE_BELOW:
        return result

    evidence = _find_intent_evidence(result.slots, context)
    if evidence is None or evidence == result.intent:
        return result

    logger.debug(f"Re-resolved intent {result.intent.value} -> {evidence.value}")
    missing = [m for m in result.missing if m != CLARIFICATION_NEEDED]
    missing += [s for s in critical_slots_for(evidence) if result.slots.get(s) is None]
    slots = dict(result.slots)
    if slots.get("item"):
        slots["item"] = resolve_ambiguous_item(slots["item"], context)
    return result.evolve(intent=evidence, missing=tuple(missing), slots=slots)


def resolve_conflicts(results: Iterable[ParseResult]) -> ParseResult | None:
    """Pick the best of several candidate parses.

    Ordered by confidence, then by having any slots, then by intent priority.
    Not part of ``Understander.understand()``, which combines its rules and
    model candidates with ``merge_results``; this is for callers holding
    several whole parses of their own, such as one per sentence.
    """
    candidates = list(results)
    if not candidates:
        return None
    return max(
        candidates,
        key=lambda r: (r.confidence, bool(r.slots), INTENT_PRIORITY.get(r.intent.value, 0)),
    )


def disambiguate(
    result: ParseResult,
    context: "UserContext | None" = None,
    now: datetime | None = None,
) -> ParseResult:
    """Normalize slots and re-resolve a weak intent.

    Args:
        result: Result to refine (typically the merged result)
        context: Optional caller context; its timezone is used for meal windows
        now: Current time, for deterministic meal-window tie-breaks

    Returns:
        New ParseResult with normalized slots and the same or higher confidence
    """
    tz = context.tz if context is not None else None
    slots = dict(result.slots)
    intent = result.intent

    if isinstance(slots.get("item"), str):
        slots["item"] = re.sub(r"\s+", " ", slots["item"]).strip() or None
        renamed = resolve_ambiguous_item(slots["item"], context)
        if renamed != slots["item"]:
            logger.debug(f"Resolved ambiguous item {slots['item']!r} -> {renamed!r}")
            slots["item"] = renamed
            if intent == Intent.DRINK and classify_item(renamed) == "food":
                intent = Intent.FOOD
    if slots.get("severity") is not None:
        slots["severity"] = normalize_severity(slots["severity"])
    if slots.get("meal_time") is not None:
        slots["meal_time"] = normalize_meal_time(slots["meal_time"], now=now, tz=tz)

    refined = result.evolve(slots=slots, intent=intent)
    return resolve_intent(refined, context)


__all__ = [
    "AMBIGUOUS_ITEM_DEFAULTS",
    "INTENT_PRIORITY",
    "classify_item",
    "disambiguate",
    "normalize_meal_time",
    "normalize_severity",
    "resolve_ambiguous_item",
    "resolve_conflicts",
    "resolve_intent",
    "severity_from_words",
]
