"""Tests for typo correction ahead of the rules parser."""

from __future__ import annotations

import pytest

from gutlog.core.nlu.spelling import (
    BM_PROTECTED,
    SpellCorrector,
    correct_spelling,
    default_protected,
    default_vocabulary,
)


@pytest.fixture
def corrector() -> SpellCorrector:
    return SpellCorrector()


# ============================================================================
# Vocabulary
# ============================================================================


class TestVocabulary:
    """Tests for the default correction targets."""

    def test_domain_words_present(self) -> None:
        vocab = default_vocabulary()
        for word in ("coffee", "reflux", "stomach", "severe", "breakfast", "cheerios"):
            assert word in vocab

    def test_bowel_words_are_never_targets(self) -> None:
        vocab = default_vocabulary()
        assert not vocab & BM_PROTECTED
        assert "diarrhea" not in vocab

    def test_short_words_excluded(self) -> None:
        assert all(len(word) >= 5 for word in default_vocabulary())

    def test_protected_includes_verbs(self) -> None:
        protected = default_protected()
        assert "sipped" in protected
        assert "poop" in protected


# ============================================================================
# Correction
# ============================================================================


class TestSpellCorrector:
    """Tests for SpellCorrector.correct()."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("mild refux", "mild reflux"),
            ("stomache pain", "stomach pain"),
            ("had cofee", "had coffee"),
        ],
    )
    def test_corrects_typos(self, corrector: SpellCorrector, text: str, expected: str) -> None:
        assert corrector.correct(text).text == expected

    def test_reports_corrections(self, corrector: SpellCorrector) -> None:
        result = corrector.correct("mild refux")
        assert result.corrections == [("refux", "reflux")]

    def test_known_words_untouched(self, corrector: SpellCorrector) -> None:
        result = corrector.correct("I had chicken salad for lunch")
        assert result.text == "I had chicken salad for lunch"
        assert result.corrections == []

    def test_short_and_unknown_words_untouched(self, corrector: SpellCorrector) -> None:
        assert corrector.correct("paint the zorblax").text == "paint the zorblax"

    def test_plural_of_known_word_untouched(self, corrector: SpellCorrector) -> None:
        assert corrector.correct_word("lattes") is None

    def test_glued_tokens_untouched(self, corrector: SpellCorrector) -> None:
        """Words joined to digits, apostrophes or hyphens are left alone."""
        assert corrector.correct("refux-ish 7refux didn't").text == "refux-ish 7refux didn't"

    def test_bowel_message_skipped(self, corrector: SpellCorrector) -> None:
        """A bowel-movement message is never corrected."""
        result = corrector.correct("poop after cofee")
        assert result.text == "poop after cofee"
        assert result.corrections == []

    def test_protected_word_never_corrected(self) -> None:
        corrector = SpellCorrector(vocabulary=["looser"], protected=["loose"])
        assert corrector.correct_word("loose") is None
        assert corrector.correct_word("loosr") == "looser"

    def test_custom_cutoff(self) -> None:
        strict = SpellCorrector(vocabulary=["reflux"], protected=[], score_cutoff=95)
        assert strict.correct_word("refux") is None

    def test_empty(self, corrector: SpellCorrector) -> None:
        assert corrector.correct("").text == ""

    def test_convenience_function(self) -> None:
        assert correct_spelling("mild refux").text == "mild reflux"
