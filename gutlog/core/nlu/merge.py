"""Merge a rules result with a model extraction.

Rules slots win on conflict because they come from explicit pattern matches.
The model mostly fills gaps: when it supplies a slot that is critical for
the final intent and that the rules result lacked, confidence is raised to
the rescue floor.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .ontology import clamp_bristol, clamp_severity
from .taxonomy import (
    CLARIFICATION_NEEDED,
    Intent,
    ParseConfidence,
    ParseResult,
    coerce_intent,
    critical_slots_for,
)

logger = logging.getLogger(__name__)


def _clean_model_slots(slots: Any) -> dict[str, Any]:
    if not isinstance(slots, Mapping):
        return {}
    cleaned: dict[str, Any] = {}
    for key, value in slots.items():
        if value is None:
            continue
        if key == "severity":
            value = clamp_severity(value)
        elif key == "bristol":
            value = clamp_bristol(value)
        if value is not None:
            cleaned[key] = value
    return cleaned


def merge_results(rules: ParseResult, model: Mapping[str, Any] | None) -> ParseResult:
    """Combine a rules result with an optional model extraction.

    Args:
        rules: Result from the rules pass (after any learned-phrase override)
        model: Sanitized model extraction, or None when the model gave nothing

    Returns:
        Merged ParseResult with source "merged", or ``rules`` unchanged when
        there is no model result
    """
    if not model:
        return rules

    model_intent = coerce_intent(model.get("intent"))
    intent = rules.intent
    if intent == Intent.OTHER and model_intent is not None:
        intent = model_intent

    model_slots = _clean_model_slots(model.get("slots"))
    slots = {**model_slots, **{k: v for k, v in rules.slots.items() if v is not None}}

    model_missing = model.get("missing") or []
    candidates = list(rules.missing) + [m for m in model_missing if isinstance(m, str)]
    candidates += [s for s in critical_slots_for(intent) if slots.get(s) is None]
    if intent != Intent.OTHER:
        candidates = [m for m in candidates if m != CLARIFICATION_NEEDED]

    confidence = rules.confidence
    filled_by_model = [
        s for s in critical_slots_for(intent) if rules.slots.get(s) is None and s in model_slots
    ]
    if filled_by_model:
        confidence = max(confidence, ParseConfidence.RESCUE_FLOOR)
        logger.debug(f"Model filled critical slots {filled_by_model}; confidence {confidence}")

    return rules.evolve(
        intent=intent,
        confidence=confidence,
        slots=slots,
        missing=tuple(candidates),
        source="merged",
    )


__all__ = ["merge_results"]
