"""Fallback gate: decides when the rules result needs the model.

Food and drink items are cheap to get right deterministically, so those
intents only escalate when confidence is very low or the item is missing.
Everything else escalates on moderate doubt or any missing critical slot.
"""

from __future__ import annotations

from .taxonomy import CRITICAL_SLOTS, Intent, ParseConfidence, ParseResult

# Food/drink escalate below this confidence
FOOD_DRINK_ESCALATE_BELOW = 0.6

# Other intents escalate below this confidence
OTHER_ESCALATE_BELOW = 0.75


def needs_fallback(result: ParseResult) -> bool:
    """Check if a result should be sent to the model adapter.

    Args:
        result: Rules (or lexicon-adjusted) parse result

    Returns:
        True if the model should be asked to fill in the gaps
    """
    if result.confidence >= ParseConfidence.STRICT and not result.missing:
        return False

    critical = CRITICAL_SLOTS.get(result.intent, ())
    critical_missing = any(result.slots.get(name) is None for name in critical)

    if result.intent in (Intent.FOOD, Intent.DRINK):
        return result.confidence < FOOD_DRINK_ESCALATE_BELOW or critical_missing

    return result.confidence < OTHER_ESCALATE_BELOW or critical_missing


__all__ = ["FOOD_DRINK_ESCALATE_BELOW", "OTHER_ESCALATE_BELOW", "needs_fallback"]
