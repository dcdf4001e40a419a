"""Intent taxonomy, parse results, and confidence thresholds for gutlog.

This module defines the intent types, the per-intent critical slots, and the
confidence levels used throughout the understanding pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Intent(str, Enum):
    """Loggable intent types for a single health-tracking message."""

    FOOD = "food"
    DRINK = "drink"
    SYMPTOM = "symptom"
    REFLUX = "reflux"
    BM = "bm"  # Bowel movement
    CHECKIN = "checkin"
    OTHER = "other"


class ParseConfidence:
    """Confidence tiers assigned by the rules parser and used by the gate.

    Tiers reflect how specific the matched pattern was:
    - REFLUX (0.90): Very specific keywords
    - BM / CHECKIN (0.85): Unambiguous vocabulary
    - SYMPTOM (0.80): Named symptom
    - DRINK (0.75): Beverage synonym or drinking verb
    - FOOD / GENERAL (0.70): Item or eating verb, vague feeling words
    - FALLBACK (0.30): Nothing matched
    """

    REFLUX = 0.9
    BM = 0.85
    CHECKIN = 0.85
    SYMPTOM = 0.8
    DRINK = 0.75
    FOOD = 0.7
    GENERAL = 0.7
    FALLBACK = 0.3

    # Results with a missing critical slot never exceed this
    INCOMPLETE_CAP = 0.7

    # Gate and acceptance thresholds
    STRICT = 0.8
    RESCUE_FLOOR = 0.85
    DISAMBIGUATE_BELOW = 0.7
    REJECT_BELOW = 0.5


class Decision:
    """Acceptance tiers reported for each final result."""

    STRICT = "strict"
    LENIENT = "lenient"
    RESCUED = "rescued"
    NEEDS_CLARIFICATION = "needs_clarification"
    REJECTED = "rejected"


CLARIFICATION_NEEDED = "clarification_needed"

# Slots that must be present for a result to be complete
CRITICAL_SLOTS: dict[Intent, tuple[str, ...]] = {
    Intent.FOOD: ("item",),
    Intent.DRINK: ("item",),
    Intent.SYMPTOM: ("symptom_type", "severity"),
    Intent.REFLUX: ("severity",),
    Intent.BM: ("bristol",),
}


def critical_slots_for(intent: Intent | str) -> tuple[str, ...]:
    """Return the critical slot names for an intent (empty for unknown)."""
    try:
        return CRITICAL_SLOTS.get(Intent(intent), ())
    except ValueError:
        return ()


def coerce_intent(value: Any) -> Intent | None:
    """Map a string (any case) to an Intent, or None if it is not one."""
    if isinstance(value, Intent):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Intent(value.strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class ParseResult:
    """Result of understanding a single message.

    Instances are never mutated; pipeline stages build new ones with
    ``evolve()``. The constructor enforces two invariants: confidence is
    clamped to [0, 1], and ``missing`` never names a slot that has a
    non-null value.

    Attributes:
        intent: The classified intent
        confidence: Confidence score 0.0-1.0
        slots: Extracted slots (item, meal_time, severity, bristol, ...)
        missing: Required slot names not yet filled
        source: Provenance (rules, lexicon, merged, fallback)
        decision: Acceptance tier set by the pipeline
        notes: Canonical notes string set by the postprocessor
    """

    intent: Intent
    confidence: float
    slots: dict[str, Any] = field(default_factory=dict)
    missing: tuple[str, ...] = ()
    source: str = "rules"
    decision: str | None = None
    notes: str = ""

    def __post_init__(self) -> None:
        slots = dict(self.slots)
        missing: list[str] = []
        for name in self.missing:
            if slots.get(name) is None and name not in missing:
                missing.append(name)
        object.__setattr__(self, "intent", coerce_intent(self.intent) or Intent.OTHER)
        object.__setattr__(self, "confidence", max(0.0, min(1.0, float(self.confidence))))
        object.__setattr__(self, "slots", slots)
        object.__setattr__(self, "missing", tuple(missing))

    @classmethod
    def clarification(cls, source: str = "fallback") -> "ParseResult":
        """Create the default result for input that could not be classified."""
        return cls(
            intent=Intent.OTHER,
            confidence=ParseConfidence.FALLBACK,
            missing=(CLARIFICATION_NEEDED,),
            source=source,
        )

    def evolve(self, **changes: Any) -> "ParseResult":
        """Return a copy with the given fields replaced."""
        if "slots" not in changes:
            changes["slots"] = dict(self.slots)
        return replace(self, **changes)

    @property
    def needs_clarification(self) -> bool:
        """Check if a critical slot or the whole intent is still unresolved."""
        if CLARIFICATION_NEEDED in self.missing:
            return True
        return any(name in self.missing for name in critical_slots_for(self.intent))

    def critical_missing(self) -> list[str]:
        """List critical slots for this intent that are unfilled."""
        return [name for name in critical_slots_for(self.intent) if self.slots.get(name) is None]

    def is_strict(self) -> bool:
        """Check if confidence meets the strict acceptance threshold."""
        return self.confidence >= ParseConfidence.STRICT

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "intent": self.intent.value,
            "confidence": round(self.confidence, 3),
            "slots": dict(self.slots),
            "missing": list(self.missing),
            "source": self.source,
            "decision": self.decision,
            "notes": self.notes,
        }


__all__ = [
    "CLARIFICATION_NEEDED",
    "CRITICAL_SLOTS",
    "Decision",
    "Intent",
    "ParseConfidence",
    "ParseResult",
    "coerce_intent",
    "critical_slots_for",
]
