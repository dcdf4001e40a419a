"""Postprocessing and canonical notes serialization.

Cleans free-text slots, re-clamps numeric ranges, and serializes slots into
the versioned notes string stored with every record:

    notes_v=2.1; meal=breakfast; caffeine; severity=3; confidence=rules

Tokens are validated against the notes vocabulary. Invalid values are dropped
and counted; unknown keys are kept, sorted last, and counted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Union

from .notes_vocab import (
    NOTES_VERSION,
    VERSION_KEY,
    get_canonical_position,
    is_known_key,
    is_valid_value,
)
from .ontology import clamp_bristol, clamp_severity
from .taxonomy import ParseResult, critical_slots_for

if TYPE_CHECKING:
    from .metrics import NLUMetrics

logger = logging.getLogger(__name__)

NotesInput = Union[str, Mapping[str, Any], Iterable[tuple[str, Any]]]

# Slot name → notes key, for slots whose key differs
SLOT_TO_NOTES_KEY: dict[str, str] = {
    "meal_time": "meal",
    "time_approx": "time≈",
    "quantity": "portion",
}

# Boolean slots written as bare flags
FLAG_SLOTS = ("dairy", "non_dairy", "caffeine", "decaf", "deleted")

# Slots that are stored in their own columns, not in notes
EXCLUDED_SLOTS = frozenset({"item", "note", "timestamp"})

# Parse source → notes confidence token
SOURCE_TO_CONFIDENCE: dict[str, str] = {
    "rules": "rules",
    "lexicon": "manual",
    "merged": "merged",
    "fallback": "llm",
}

_MEAL_PHRASE = re.compile(r"\s+(?:for|at|during)\s+(?:breakfast|lunch|dinner|snack)\b", re.IGNORECASE)
_LIST_SEPARATOR = re.compile(r"\s*(?:,|&|\+|\band\b)\s*", re.IGNORECASE)


def strip_meal_phrases(text: str) -> str:
    """Remove meal-context phrases ("for breakfast", "at lunch")."""
    return _MEAL_PHRASE.sub("", text or "").strip()


def normalize_list(text: str) -> str:
    """Normalize a delimited list to a single " & " separator.

    "toast, jam and butter" becomes "toast & jam & butter".
    """
    parts = [p.strip() for p in _LIST_SEPARATOR.split(text or "")]
    return " & ".join(p for p in parts if p)


def _clean_value(value: Any) -> Any:
    if value is True:
        return True
    if isinstance(value, (list, tuple)):
        value = " & ".join(str(v) for v in value if v not in (None, ""))
    # ";" separates tokens, so it can never appear inside a value
    text = re.sub(r"\s+", " ", str(value).replace(";", ",")).strip()
    return text


def build_notes_tokens(slots: Mapping[str, Any], source: str | None = None) -> list[tuple[str, Any]]:
    """Build ordered (key, value) notes tokens from slots.

    The version token is always first. Flags carry the value True.

    Args:
        slots: Result slots
        source: Parse source, written as the confidence token

    Returns:
        Tokens sorted in canonical order
    """
    tokens: dict[str, Any] = {VERSION_KEY: NOTES_VERSION}

    for name, value in slots.items():
        if name in EXCLUDED_SLOTS or name.startswith("_"):
            continue
        if value is None or value is False or value == "" or isinstance(value, Mapping):
            continue
        if name in FLAG_SLOTS:
            tokens[name] = True
            continue
        key = SLOT_TO_NOTES_KEY.get(name, name)
        tokens.setdefault(key, _clean_value(value))

    if source in SOURCE_TO_CONFIDENCE:
        tokens["confidence"] = SOURCE_TO_CONFIDENCE[source]

    return _sort_tokens(tokens.items())


def _sort_tokens(tokens: Iterable[tuple[str, Any]]) -> list[tuple[str, Any]]:
    # Unknown keys share one position; order them by name for determinism
    return sorted(tokens, key=lambda kv: (get_canonical_position(kv[0]), kv[0]))


def parse_notes(notes: str | None) -> dict[str, Any]:
    """Parse a notes string into a key → value dict; flags map to True."""
    tokens: dict[str, Any] = {}
    if not notes or not isinstance(notes, str):
        return tokens

    for part in notes.split(";"):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        key = key.strip()
        if not key:
            continue
        tokens[key] = value.strip() if sep else True
    return tokens


@dataclass
class NotesValidation:
    """Outcome of canonicalizing a set of notes tokens."""

    notes: str
    invalid: list[tuple[str, Any]] = field(default_factory=list)
    unknown_keys: list[str] = field(default_factory=list)


def validate_notes(tokens: NotesInput) -> NotesValidation:
    """Validate and canonicalize notes tokens, reporting what was dropped.

    Args:
        tokens: Notes string, mapping, or iterable of (key, value) pairs

    Returns:
        NotesValidation with the canonical string and the dropped/unknown keys
    """
    if isinstance(tokens, str):
        items: Iterable[tuple[str, Any]] = parse_notes(tokens).items()
    elif isinstance(tokens, Mapping):
        items = tokens.items()
    else:
        items = tokens

    valid: dict[str, Any] = {}
    invalid: list[tuple[str, Any]] = []
    unknown: list[str] = []

    for key, value in items:
        key = str(key).strip()
        if not key or key == VERSION_KEY:
            continue
        if value is None or value is False or value == "":
            continue
        value = _clean_value(value)
        if value == "":
            continue
        if not is_valid_value(key, value):
            logger.warning(f"Dropping invalid notes token {key}={value!r}")
            invalid.append((key, value))
            continue
        if not is_known_key(key):
            unknown.append(key)
        valid[key] = value

    valid[VERSION_KEY] = NOTES_VERSION
    parts = [key if value is True else f"{key}={value}" for key, value in _sort_tokens(valid.items())]
    return NotesValidation(notes="; ".join(parts), invalid=invalid, unknown_keys=sorted(set(unknown)))


def canonicalize_notes(tokens: NotesInput, metrics: "NLUMetrics | None" = None) -> str:
    """Return the canonical notes string for tokens.

    Args:
        tokens: Notes string, mapping, or iterable of (key, value) pairs
        metrics: Optional counters for invalid tokens and unknown keys

    Returns:
        Canonical "; "-joined string, version token first
    """
    validation = validate_notes(tokens)
    if metrics is not None:
        metrics.record_notes(invalid=len(validation.invalid), unknown_keys=validation.unknown_keys)
    return validation.notes


def postprocess(result: ParseResult, metrics: "NLUMetrics | None" = None) -> ParseResult:
    """Clean slots and attach the canonical notes string.

    Args:
        result: Final parse result from the pipeline
        metrics: Optional counters for notes validation

    Returns:
        New ParseResult with cleaned slots and ``notes`` set
    """
    slots = dict(result.slots)
    missing = list(result.missing)

    for name in ("item", "sides"):
        value = slots.get(name)
        if isinstance(value, str):
            value = strip_meal_phrases(value)
            if name == "sides":
                value = normalize_list(value)
            slots[name] = re.sub(r"\s+", " ", value).strip() or None

    for name, clamp in (("severity", clamp_severity), ("bristol", clamp_bristol)):
        if slots.get(name) is not None:
            slots[name] = clamp(slots[name])
            if slots[name] is None:
                logger.warning(f"Dropping non-numeric {name} slot")
                missing.append(name)

    slots = {k: v for k, v in slots.items() if v is not None}
    missing += [s for s in critical_slots_for(result.intent) if s not in slots and s not in missing]
    notes = canonicalize_notes(build_notes_tokens(slots, result.source), metrics=metrics)
    return result.evolve(slots=slots, missing=tuple(missing), notes=notes)


__all__ = [
    "NotesValidation",
    "build_notes_tokens",
    "canonicalize_notes",
    "normalize_list",
    "parse_notes",
    "postprocess",
    "strip_meal_phrases",
    "validate_notes",
]
