"""Tests for merging rules results with model extractions."""

from __future__ import annotations

from gutlog.core.nlu.merge import merge_results
from gutlog.core.nlu.taxonomy import CLARIFICATION_NEEDED, Intent, ParseConfidence, ParseResult


def stomach_pain() -> ParseResult:
    return ParseResult(
        intent=Intent.SYMPTOM,
        confidence=0.7,
        slots={"symptom_type": "stomach pain"},
        missing=("severity",),
    )


class TestMergeResults:
    """Tests for merge_results()."""

    def test_no_model_returns_rules(self) -> None:
        rules = stomach_pain()
        assert merge_results(rules, None) is rules
        assert merge_results(rules, {}) is rules

    def test_model_fills_critical_slot(self) -> None:
        """Filling a critical slot rescues confidence to the floor."""
        model = {
            "intent": "symptom",
            "slots": {"symptom_type": "pain", "severity": 6},
            "confidence": 0.8,
            "missing": [],
        }
        merged = merge_results(stomach_pain(), model)

        assert merged.source == "merged"
        assert merged.slots["severity"] == 6
        assert merged.missing == ()
        assert merged.confidence == ParseConfidence.RESCUE_FLOOR

    def test_rules_slots_win(self) -> None:
        model = {"intent": "symptom", "slots": {"symptom_type": "pain", "severity": 6}}
        merged = merge_results(stomach_pain(), model)
        assert merged.slots["symptom_type"] == "stomach pain"

    def test_rules_intent_kept(self) -> None:
        """The model only picks the intent when rules found none."""
        model = {"intent": "reflux", "slots": {"severity": 4}}
        merged = merge_results(stomach_pain(), model)
        assert merged.intent == Intent.SYMPTOM

    def test_model_intent_used_for_other(self) -> None:
        rules = ParseResult.clarification(source="rules")
        model = {"intent": "bm", "slots": {"bristol": 4}, "confidence": 0.9}
        merged = merge_results(rules, model)

        assert merged.intent == Intent.BM
        assert CLARIFICATION_NEEDED not in merged.missing
        assert merged.slots["bristol"] == 4
        assert merged.confidence == ParseConfidence.RESCUE_FLOOR

    def test_model_without_critical_slot(self) -> None:
        """No rescue when the model adds nothing critical."""
        model = {"intent": "symptom", "slots": {"time": "10:00"}, "missing": ["severity"]}
        merged = merge_results(stomach_pain(), model)

        assert merged.confidence == 0.7
        assert merged.missing == ("severity",)
        assert merged.slots["time"] == "10:00"

    def test_model_slots_clamped(self) -> None:
        model = {"intent": "symptom", "slots": {"severity": 99}}
        merged = merge_results(stomach_pain(), model)
        assert merged.slots["severity"] == 10

    def test_confidence_never_decreases(self) -> None:
        rules = ParseResult(intent=Intent.REFLUX, confidence=0.9, slots={"severity": 3})
        model = {"intent": "reflux", "slots": {}, "confidence": 0.1}
        assert merge_results(rules, model).confidence >= rules.confidence

    def test_missing_disjoint_from_slots(self) -> None:
        model = {"intent": "symptom", "slots": {"severity": 5}, "missing": ["severity", "time"]}
        merged = merge_results(stomach_pain(), model)
        assert "severity" not in merged.missing
        assert "time" in merged.missing
