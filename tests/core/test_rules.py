"""Tests for the deterministic rules parser.

Tests cover:
- Reference scenarios for each intent
- Tier priority (bm and reflux before food/drink)
- Item, side, quantity, brand and flag extraction
- Severity, Bristol and meal-time slot filling
- Degenerate input (empty, punctuation, non-ASCII, oversized)
"""

from __future__ import annotations

from datetime import datetime

import pytest

from gutlog.core.nlu.rules import (
    MEAL_TIME_INFERRED_NOTE,
    RulesParser,
    extract_items,
    item_kind,
    rules_parse,
)
from gutlog.core.nlu.taxonomy import CLARIFICATION_NEEDED, Intent, ParseConfidence

LUNCHTIME = datetime(2026, 3, 2, 12, 30)
MORNING = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def parser() -> RulesParser:
    return RulesParser()


def assert_well_formed(result) -> None:
    assert isinstance(result.intent, Intent)
    assert 0.0 <= result.confidence <= 1.0
    for name in result.missing:
        assert result.slots.get(name) is None
    if "severity" in result.slots:
        assert 1 <= result.slots["severity"] <= 10
    if "bristol" in result.slots:
        assert 1 <= result.slots["bristol"] <= 7


# ============================================================================
# Reference scenarios
# ============================================================================


class TestScenarios:
    """One message per intent, with the expected slots."""

    def test_bm_with_bristol(self, parser: RulesParser) -> None:
        result = parser.parse("bm bristol 4", now=LUNCHTIME)
        assert result.intent == Intent.BM
        assert result.slots["bristol"] == 4
        assert result.missing == ()
        assert result.confidence == ParseConfidence.BM
        assert result.source == "rules"

    def test_mild_reflux(self, parser: RulesParser) -> None:
        result = parser.parse("mild reflux", now=LUNCHTIME)
        assert result.intent == Intent.REFLUX
        assert result.slots["severity"] == 3
        assert result.slots["severity_note"] == "auto-detected from adjective"
        assert result.confidence == ParseConfidence.REFLUX

    def test_chicken_salad(self, parser: RulesParser) -> None:
        result = parser.parse("I had chicken salad", now=LUNCHTIME)
        assert result.intent == Intent.FOOD
        assert "chicken salad" in result.slots["item"]
        assert result.slots["meal_time"] == "lunch"
        assert result.slots["meal_time_note"] == MEAL_TIME_INFERRED_NOTE
        assert result.missing == ()

    def test_stomach_pain_missing_severity(self, parser: RulesParser) -> None:
        result = parser.parse("stomach pain", now=LUNCHTIME)
        assert result.intent == Intent.SYMPTOM
        assert result.slots["symptom_type"] == "stomach pain"
        assert result.missing == ("severity",)
        assert result.confidence < ParseConfidence.STRICT

    def test_gibberish(self, parser: RulesParser) -> None:
        result = parser.parse("asdkj qwe", now=LUNCHTIME)
        assert result.intent == Intent.OTHER
        assert result.missing == (CLARIFICATION_NEEDED,)
        assert result.confidence == ParseConfidence.FALLBACK

    def test_convenience_function(self) -> None:
        """rules_parse uses the module-level parser."""
        result = rules_parse("bm bristol 4", now=LUNCHTIME)
        assert result.intent == Intent.BM


# ============================================================================
# Intent tiers
# ============================================================================


class TestTiers:
    """Tests for the classification cascade."""

    def test_bm_before_drink(self, parser: RulesParser) -> None:
        """Bowel-movement words win over a drink in the same message."""
        result = parser.parse("poop after coffee", now=LUNCHTIME)
        assert result.intent == Intent.BM

    def test_reflux_before_food(self, parser: RulesParser) -> None:
        result = parser.parse("heartburn after pizza", now=LUNCHTIME)
        assert result.intent == Intent.REFLUX

    def test_bm_descriptor(self, parser: RulesParser) -> None:
        """Descriptors map to a Bristol estimate with a note."""
        result = parser.parse("bm loose", now=LUNCHTIME)
        assert result.slots["bristol"] == 6
        assert result.slots["bristol_note"] == "auto-detected from loose"

    def test_bm_without_bristol_is_capped(self, parser: RulesParser) -> None:
        """A missing critical slot caps confidence."""
        result = parser.parse("bm", now=LUNCHTIME)
        assert result.missing == ("bristol",)
        assert result.confidence == ParseConfidence.INCOMPLETE_CAP

    def test_numeric_severity(self, parser: RulesParser) -> None:
        result = parser.parse("reflux 7/10", now=LUNCHTIME)
        assert result.slots["severity"] == 7
        assert "severity_note" not in result.slots

    def test_severe_stomach_pain_is_complete(self, parser: RulesParser) -> None:
        result = parser.parse("severe stomach pain", now=LUNCHTIME)
        assert result.slots["severity"] == 8
        assert result.missing == ()
        assert result.confidence == ParseConfidence.SYMPTOM

    def test_general_feeling(self, parser: RulesParser) -> None:
        result = parser.parse("feeling rough", now=LUNCHTIME)
        assert result.intent == Intent.SYMPTOM
        assert result.slots["symptom_type"] == "general"
        assert result.confidence <= ParseConfidence.GENERAL

    def test_checkin(self, parser: RulesParser) -> None:
        result = parser.parse("skipped breakfast", now=LUNCHTIME)
        assert result.intent == Intent.CHECKIN
        assert result.slots["note"] == "skipped breakfast"
        assert result.slots["meal_time"] == "breakfast"
        assert result.missing == ()

    def test_drink(self, parser: RulesParser) -> None:
        result = parser.parse("latte with oat milk", now=MORNING)
        assert result.intent == Intent.DRINK
        assert result.slots["item"] == "latte"
        assert result.slots["sides"] == "oat milk"
        assert result.slots["non_dairy"] is True
        assert result.slots["caffeine"] is True
        assert "dairy" not in result.slots
        assert result.slots["meal_time"] == "breakfast"
        assert result.confidence == ParseConfidence.DRINK

    def test_drink_quantity(self, parser: RulesParser) -> None:
        result = parser.parse("2 cups of coffee", now=MORNING)
        assert result.intent == Intent.DRINK
        assert result.slots["item"] == "coffee"
        assert result.slots["quantity"] == "2 cups"

    def test_food_stated_meal(self, parser: RulesParser) -> None:
        """An explicit meal phrase beats clock inference."""
        result = parser.parse("had oatmeal for breakfast", now=LUNCHTIME)
        assert result.intent == Intent.FOOD
        assert result.slots["item"] == "oatmeal"
        assert result.slots["meal_time"] == "breakfast"
        assert "meal_time_note" not in result.slots

    def test_food_stated_clock(self, parser: RulesParser) -> None:
        """A stated clock time picks the meal window."""
        result = parser.parse("toast at 8am", now=LUNCHTIME)
        assert result.slots["item"] == "toast"
        assert result.slots["time"] == "08:00"
        assert result.slots["meal_time"] == "breakfast"
        assert result.slots["meal_time_note"] == "inferred from stated time"

    def test_branded_cereal_is_food(self, parser: RulesParser) -> None:
        """A brand-anchored item is food even when milk is mentioned."""
        result = parser.parse("Honey Nut Cheerios with oat milk", now=MORNING)
        assert result.intent == Intent.FOOD
        assert result.slots["brand"] == "Honey Nut Cheerios"
        assert result.slots["item"] == "honey nut cheerios"

    def test_relative_daypart(self, parser: RulesParser) -> None:
        result = parser.parse("pasta tonight", now=MORNING)
        assert result.slots["meal_time"] == "dinner"
        assert result.slots["time_approx"] == "night"

    def test_stated_meal_beats_daypart(self, parser: RulesParser) -> None:
        """A meal keyword overrides the meal implied by a daypart phrase."""
        result = parser.parse("late night snack chips", now=MORNING)
        assert result.intent == Intent.FOOD
        assert result.slots["meal_time"] == "snack"
        assert result.slots["time_approx"] == "late"
        assert result.slots["item"] == "chips"

    def test_late_night_is_canonical_meal(self, parser: RulesParser) -> None:
        result = parser.parse("ate chips late night", now=MORNING)
        assert result.slots["meal_time"] == "dinner"
        assert result.slots["time_approx"] == "late"

    def test_feeling_phrase_is_not_severity(self, parser: RulesParser) -> None:
        """The word "bad" in "bad day" names the feeling, not a score."""
        result = parser.parse("bad day", now=LUNCHTIME)
        assert result.intent == Intent.SYMPTOM
        assert result.slots["symptom_type"] == "general"
        assert "severity" not in result.slots
        assert result.missing == ("severity",)

    def test_feeling_phrase_with_separate_severity(self, parser: RulesParser) -> None:
        result = parser.parse("bad day, pretty severe", now=LUNCHTIME)
        assert result.slots["symptom_type"] == "general"
        assert result.slots["severity"] == 8

    def test_gas_station_is_not_bloating(self, parser: RulesParser) -> None:
        result = parser.parse("ate gas station sushi", now=LUNCHTIME)
        assert result.intent == Intent.FOOD
        assert "symptom_type" not in result.slots

    @pytest.mark.parametrize("text", ["had gas after lunch", "gassy", "gas pains"])
    def test_gas_phrases_are_bloating(self, parser: RulesParser, text: str) -> None:
        result = parser.parse(text, now=LUNCHTIME)
        assert result.intent == Intent.SYMPTOM
        assert result.slots["symptom_type"] == "bloat"

    def test_timezone_override(self) -> None:
        """Aware "now" is converted to the parser's timezone."""
        from datetime import timezone

        now = datetime(2026, 1, 15, 20, 0, tzinfo=timezone.utc)
        la = RulesParser(tz="America/Los_Angeles").parse("had toast", now=now)
        london = RulesParser(tz="Europe/London").parse("had toast", now=now)
        assert la.slots["meal_time"] == "lunch"
        assert london.slots["meal_time"] == "dinner"


# ============================================================================
# Typo correction
# ============================================================================


class TestTypos:
    """Tests for typo correction ahead of the tiers."""

    def test_misspelled_reflux(self, parser: RulesParser) -> None:
        result = parser.parse("mild refux", now=LUNCHTIME)
        assert result.intent == Intent.REFLUX
        assert result.slots["severity"] == 3

    def test_misspelled_stomach(self, parser: RulesParser) -> None:
        result = parser.parse("stomache pain", now=LUNCHTIME)
        assert result.intent == Intent.SYMPTOM
        assert result.slots["symptom_type"] == "stomach pain"

    def test_misspelled_drink(self, parser: RulesParser) -> None:
        result = parser.parse("had cofee", now=MORNING)
        assert result.intent == Intent.DRINK
        assert result.slots["item"] == "coffee"

    def test_bowel_message_not_corrected(self, parser: RulesParser) -> None:
        """Bowel-movement words never turn into food or drink."""
        result = parser.parse("poop after cofee bristol 4", now=LUNCHTIME)
        assert result.intent == Intent.BM
        assert result.slots["bristol"] == 4
        assert "item" not in result.slots

    def test_checkin_note_keeps_original_text(self, parser: RulesParser) -> None:
        result = parser.parse("skipped brekfast", now=LUNCHTIME)
        assert result.intent == Intent.CHECKIN
        assert result.slots["note"] == "skipped brekfast"
        assert result.slots["meal_time"] == "breakfast"


# ============================================================================
# Item extraction
# ============================================================================


class TestExtractItems:
    """Tests for item, side and quantity extraction."""

    def test_sides(self) -> None:
        items = extract_items("toast, jam and butter")
        assert items.item == "toast"
        assert items.sides == "jam & butter"
        assert items.anchored is True
        assert items.extras["dairy"] is True

    def test_compound_item_not_split(self) -> None:
        items = extract_items("mac and cheese")
        assert items.item == "mac and cheese"
        assert items.sides is None

    def test_portion_grams(self) -> None:
        items = extract_items("200g chicken")
        assert items.item == "chicken"
        assert items.quantity == "200g"
        assert items.extras["portion_g"] == "200"

    def test_size(self) -> None:
        items = extract_items("large iced coffee")
        assert items.extras["size"] == "large"
        assert items.item == "iced coffee"

    def test_decaf(self) -> None:
        items = extract_items("decaf latte")
        assert items.extras["decaf"] is True
        assert "caffeine" not in items.extras

    def test_unanchored_needs_verb(self) -> None:
        """Without a known noun, an item is only taken after an eating verb."""
        assert extract_items("zorblax").item is None
        assert extract_items("ate zorblax").item == "zorblax"

    def test_item_kind(self) -> None:
        assert item_kind("iced coffee") == "drink"
        assert item_kind("coffee cake") == "food"
        assert item_kind("chicken soup") == "food"
        assert item_kind("zorblax") is None
        assert item_kind(None) is None


# ============================================================================
# Degenerate input
# ============================================================================


class TestEdgeCases:
    """Tests for inputs that must never break the parser."""

    @pytest.mark.parametrize("text", ["", "   ", "!!!???", "...", "🍕🍕", "café crème brûlée ☕", None])
    def test_well_formed(self, parser: RulesParser, text) -> None:
        """Every input returns a well-formed result."""
        result = parser.parse(text, now=LUNCHTIME)
        assert_well_formed(result)

    def test_empty_needs_clarification(self, parser: RulesParser) -> None:
        result = parser.parse("", now=LUNCHTIME)
        assert result.intent == Intent.OTHER
        assert result.missing == (CLARIFICATION_NEEDED,)
        assert result.source == "rules"

    def test_punctuation_only(self, parser: RulesParser) -> None:
        result = parser.parse("!!!???", now=LUNCHTIME)
        assert result.intent == Intent.OTHER

    def test_oversized_input_truncated(self, parser: RulesParser) -> None:
        result = parser.parse("toast " * 1000, now=LUNCHTIME)
        assert result.intent == Intent.FOOD
        assert_well_formed(result)

    def test_internal_error_returns_clarification(self, parser: RulesParser, monkeypatch) -> None:
        """Failures inside a tier are logged and converted, never raised."""

        def boom(text: str):
            raise RuntimeError("boom")

        monkeypatch.setattr(parser.time_extractor, "extract", boom)
        result = parser.parse("bm bristol 4", now=LUNCHTIME)
        assert result.intent == Intent.OTHER
        assert result.missing == (CLARIFICATION_NEEDED,)

    def test_all_results_well_formed(self, parser: RulesParser) -> None:
        for text in [
            "bm bristol 9",
            "severity 14 cramps",
            "had 3 eggs and bacon",
            "green tea this afternoon",
            "not feeling well",
        ]:
            assert_well_formed(parser.parse(text, now=LUNCHTIME))
