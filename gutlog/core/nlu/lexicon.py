"""Per-user learned phrases and caller context.

A learned phrase maps a user's normalized message to the intent and slots
they confirmed earlier. Lookups are supplied by the caller through the
``PhraseLexicon`` protocol; ``InMemoryLexicon`` is a simple thread-safe
implementation for tests and single-process use.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from .ontology import normalize_text
from .taxonomy import CLARIFICATION_NEEDED, Intent, ParseResult, coerce_intent

logger = logging.getLogger(__name__)

# Confidence boost for a result confirmed by a learned phrase
LEARNED_BOOST = 0.15


@dataclass(frozen=True)
class LearnedPhrase:
    """A phrase → result override learned from a user correction."""

    phrase: str
    intent: Intent
    slots: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UserContext:
    """Optional per-message context supplied by the caller.

    Attributes:
        user_id: Key for learned-phrase lookup
        recent_items: Items the user logged recently, most recent first
        tz: IANA timezone name for meal-window inference
    """

    user_id: str | None = None
    recent_items: tuple[str, ...] = ()
    tz: str | None = None


@runtime_checkable
class PhraseLexicon(Protocol):
    """Lookup interface for learned phrases."""

    def lookup(self, user_id: str, phrase: str) -> LearnedPhrase | None:
        """Return the learned phrase for a user's normalized text, if any."""
        ...


class InMemoryLexicon:
    """Thread-safe in-memory PhraseLexicon."""

    def __init__(self) -> None:
        self._phrases: dict[tuple[str, str], LearnedPhrase] = {}
        self._lock = threading.Lock()

    def learn(
        self,
        user_id: str,
        phrase: str,
        intent: Intent | str,
        slots: dict[str, Any] | None = None,
    ) -> LearnedPhrase:
        """Store (or replace) a learned phrase for a user.

        Raises:
            ValueError: If intent is not a known intent
        """
        resolved = coerce_intent(intent)
        if resolved is None:
            raise ValueError(f"Unknown intent: {intent!r}")
        key = normalize_text(phrase)
        learned = LearnedPhrase(phrase=key, intent=resolved, slots=dict(slots or {}))
        with self._lock:
            self._phrases[(user_id, key)] = learned
        logger.debug(f"Learned phrase for {user_id}: {key!r} -> {resolved.value}")
        return learned

    def forget(self, user_id: str, phrase: str) -> bool:
        """Remove a learned phrase. Returns True if one was removed."""
        with self._lock:
            return self._phrases.pop((user_id, normalize_text(phrase)), None) is not None

    def lookup(self, user_id: str, phrase: str) -> LearnedPhrase | None:
        with self._lock:
            return self._phrases.get((user_id, normalize_text(phrase)))

    def __len__(self) -> int:
        with self._lock:
            return len(self._phrases)


def apply_learned_phrase(result: ParseResult, learned: LearnedPhrase | None) -> ParseResult:
    """Overlay a learned phrase onto a rules result.

    The learned intent wins, confidence is boosted by 0.15 (capped at 1.0),
    learned slots overlay the rules slots, and missing is refiltered.
    """
    if learned is None:
        return result

    slots = dict(result.slots)
    slots.update({k: v for k, v in learned.slots.items() if v is not None})
    keep_clarification = learned.intent == Intent.OTHER
    missing = [m for m in result.missing if m != CLARIFICATION_NEEDED or keep_clarification]
    return result.evolve(
        intent=learned.intent,
        confidence=min(1.0, result.confidence + LEARNED_BOOST),
        slots=slots,
        missing=tuple(missing),
        source="lexicon",
    )


__all__ = [
    "LEARNED_BOOST",
    "InMemoryLexicon",
    "LearnedPhrase",
    "PhraseLexicon",
    "UserContext",
    "apply_learned_phrase",
]
