"""Tests for postprocessing and canonical notes.

Tests cover:
- Notes token building from slots
- Canonical ordering and validation
- Round trip through parse_notes
- Slot cleanup in postprocess()
"""

from __future__ import annotations

from gutlog.core.nlu.metrics import NLUMetrics
from gutlog.core.nlu.postprocess import (
    build_notes_tokens,
    canonicalize_notes,
    normalize_list,
    parse_notes,
    postprocess,
    strip_meal_phrases,
    validate_notes,
)
from gutlog.core.nlu.taxonomy import Intent, ParseResult

# ============================================================================
# Text helpers
# ============================================================================


class TestTextHelpers:
    """Tests for free-text slot cleanup."""

    def test_strip_meal_phrases(self) -> None:
        assert strip_meal_phrases("oatmeal for breakfast") == "oatmeal"
        assert strip_meal_phrases("soup at Lunch") == "soup"
        assert strip_meal_phrases("breakfast burrito") == "breakfast burrito"

    def test_normalize_list(self) -> None:
        assert normalize_list("toast, jam and butter") == "toast & jam & butter"
        assert normalize_list("toast + jam") == "toast & jam"
        assert normalize_list("") == ""


# ============================================================================
# Notes building & canonicalization
# ============================================================================


class TestBuildNotesTokens:
    """Tests for slot → token conversion."""

    def test_version_first_and_mapped_keys(self) -> None:
        tokens = build_notes_tokens(
            {"severity": 3, "meal_time": "breakfast", "caffeine": True, "item": "latte"},
            source="rules",
        )
        assert tokens[0] == ("notes_v", "2.1")
        assert ("meal", "breakfast") in tokens
        assert ("caffeine", True) in tokens
        assert ("confidence", "rules") in tokens
        assert all(key != "item" for key, _ in tokens)

    def test_source_mapping(self) -> None:
        assert ("confidence", "manual") in build_notes_tokens({}, source="lexicon")
        assert ("confidence", "llm") in build_notes_tokens({}, source="fallback")
        assert all(key != "confidence" for key, _ in build_notes_tokens({}, source=None))

    def test_skips_empty_and_excluded(self) -> None:
        tokens = dict(build_notes_tokens({"note": "check in", "brand": "", "dairy": False, "size": None}))
        assert tokens == {"notes_v": "2.1"}

    def test_value_separator_escaped(self) -> None:
        tokens = dict(build_notes_tokens({"sides": "jam; butter"}))
        assert tokens["sides"] == "jam, butter"


class TestCanonicalizeNotes:
    """Tests for validation and ordering."""

    def test_canonical_string(self) -> None:
        notes = canonicalize_notes(
            {"severity": 3, "caffeine": True, "meal": "breakfast", "confidence": "rules"}
        )
        assert notes == "notes_v=2.1; meal=breakfast; caffeine; severity=3; confidence=rules"

    def test_deterministic_regardless_of_input_order(self) -> None:
        a = canonicalize_notes([("severity", 3), ("meal", "lunch"), ("brand", "Kind")])
        b = canonicalize_notes([("brand", "Kind"), ("meal", "lunch"), ("severity", 3)])
        assert a == b

    def test_invalid_dropped(self) -> None:
        validation = validate_notes("meal=brunch; severity=11; time=7pm; brand=Kind")
        assert validation.notes == "notes_v=2.1; brand=Kind"
        assert ("meal", "brunch") in validation.invalid
        assert len(validation.invalid) == 3

    def test_unknown_keys_sorted_last(self) -> None:
        validation = validate_notes({"zeta": "1", "alpha": "2", "meal": "lunch"})
        assert validation.notes == "notes_v=2.1; meal=lunch; alpha=2; zeta=1"
        assert validation.unknown_keys == ["alpha", "zeta"]

    def test_version_forced(self) -> None:
        """Old or missing version tokens are replaced."""
        assert canonicalize_notes("notes_v=1.0; meal=lunch") == "notes_v=2.1; meal=lunch"
        assert canonicalize_notes("") == "notes_v=2.1"

    def test_metrics_recorded(self) -> None:
        metrics = NLUMetrics()
        canonicalize_notes("meal=brunch; mystery=1", metrics=metrics)
        notes = metrics.report()["notes"]
        assert notes["validated"] == 1
        assert notes["invalid"] == 1
        assert notes["unknown_keys"] == {"mystery": 1}


class TestParseNotes:
    """Tests for parsing notes strings."""

    def test_parse(self) -> None:
        parsed = parse_notes("notes_v=2.1; meal=lunch; caffeine; time=12:30")
        assert parsed == {"notes_v": "2.1", "meal": "lunch", "caffeine": True, "time": "12:30"}

    def test_garbage(self) -> None:
        assert parse_notes(None) == {}
        assert parse_notes(";;  ; =x") == {}

    def test_round_trip(self) -> None:
        """Canonical notes parse back to the same tokens and re-canonicalize identically."""
        notes = canonicalize_notes(
            {
                "meal": "dinner",
                "time": "19:30",
                "portion_g": "200",
                "sides": "rice & beans",
                "dairy": True,
                "severity": "4",
                "confidence": "merged",
            }
        )
        assert canonicalize_notes(parse_notes(notes)) == notes
        assert parse_notes(notes)["sides"] == "rice & beans"


# ============================================================================
# postprocess()
# ============================================================================


class TestPostprocess:
    """Tests for final result cleanup."""

    def test_food_result(self) -> None:
        result = ParseResult(
            intent=Intent.FOOD,
            confidence=0.7,
            slots={
                "item": "oatmeal  for breakfast",
                "sides": "berries, honey",
                "meal_time": "breakfast",
                "dairy": True,
            },
        )
        final = postprocess(result)

        assert final.slots["item"] == "oatmeal"
        assert final.slots["sides"] == "berries & honey"
        assert final.notes == "notes_v=2.1; meal=breakfast; dairy; sides=berries & honey; confidence=rules"

    def test_severity_clamped(self) -> None:
        result = ParseResult(
            intent=Intent.REFLUX, confidence=0.9, slots={"severity": 14}, source="merged"
        )
        final = postprocess(result)
        assert final.slots["severity"] == 10
        assert final.notes == "notes_v=2.1; severity=10; confidence=merged"

    def test_non_numeric_severity_becomes_missing(self) -> None:
        result = ParseResult(intent=Intent.REFLUX, confidence=0.9, slots={"severity": "awful"})
        final = postprocess(result)
        assert "severity" not in final.slots
        assert final.missing == ("severity",)

    def test_none_slots_removed(self) -> None:
        result = ParseResult(intent=Intent.BM, confidence=0.85, slots={"bristol": 4, "time": None})
        final = postprocess(result)
        assert final.slots == {"bristol": 4}
        assert final.notes == "notes_v=2.1; bristol=4; confidence=rules"

    def test_invalid_meal_dropped_from_notes(self) -> None:
        """Slots keep the value; only the notes token is dropped."""
        result = ParseResult(
            intent=Intent.FOOD, confidence=0.7, slots={"item": "toast", "meal_time": "brunch"}
        )
        final = postprocess(result)
        assert final.slots["meal_time"] == "brunch"
        assert "meal=" not in final.notes
