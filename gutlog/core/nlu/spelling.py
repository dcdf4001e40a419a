"""Typo correction for the rules parser.

Each word is compared against the domain vocabulary (drinks, foods, symptoms,
severity words, meals, brands) with rapidfuzz and replaced by its closest
entry when the match is strong enough. Bowel-movement words are never
corrected, and a message that mentions a bowel movement is left alone
entirely so that "poop" can never turn into a food.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from rapidfuzz import fuzz, process

from .ontology import (
    ADJECTIVE_SEVERITY,
    BM_DESCRIPTORS,
    BM_KEYWORDS,
    CAFFEINE_MARKERS,
    DAIRY_MARKERS,
    DECAF_MARKERS,
    DRINK_ACTION_VERBS,
    DRINK_SYNONYMS,
    FOOD_ACTION_VERBS,
    FOOD_HEAD_NOUNS,
    GENERAL_FEELING_KEYWORDS,
    ITEM_BLACKLIST,
    KNOWN_BRANDS,
    MEAL_TIME_SYNONYMS,
    NON_DAIRY_MARKERS,
    REFLUX_KEYWORDS,
    SYMPTOM_GROUPS,
    contains_synonym,
    normalize_text,
)

logger = logging.getLogger(__name__)

# Single-word typos need a close match (fuzz.ratio, 0-100)
DEFAULT_SCORE_CUTOFF = 88

# Shorter words are too easy to mistake for another real word ("paint", "pain")
MIN_WORD_LENGTH = 5

BM_PROTECTED: frozenset[str] = frozenset(
    {
        "poop", "poops", "pooping", "pooped", "poo",
        "bm", "stool", "stools", "bowel", "bowels",
        "constipation", "constipated", "diarrhea", "diarrhoea",
        "loose", "watery", "hard", "pellet", "pellets", "pebbles",
        "bristol", "toilet", "bathroom",
    }
)


def _words(phrases: Iterable[str]) -> set[str]:
    return {word for phrase in phrases for word in normalize_text(phrase).split()}


def _bm_words() -> set[str]:
    words = _words(BM_KEYWORDS) | set(BM_PROTECTED)
    for descriptors in BM_DESCRIPTORS.values():
        words |= _words(descriptors)
    return words


def default_vocabulary() -> set[str]:
    """Words a typo may be corrected to."""
    phrases: list[str] = list(FOOD_HEAD_NOUNS) + list(REFLUX_KEYWORDS) + list(GENERAL_FEELING_KEYWORDS)
    for synonyms in DRINK_SYNONYMS.values():
        phrases.extend(synonyms)
    for group, synonyms in SYMPTOM_GROUPS.items():
        phrases.append(group)
        phrases.extend(synonyms)
    for meal, synonyms in MEAL_TIME_SYNONYMS.items():
        phrases.append(meal)
        phrases.extend(synonyms)
    phrases += list(ADJECTIVE_SEVERITY) + list(KNOWN_BRANDS)
    phrases += DAIRY_MARKERS + NON_DAIRY_MARKERS + CAFFEINE_MARKERS + DECAF_MARKERS

    words = {w for w in _words(phrases) if len(w) >= MIN_WORD_LENGTH and w.isalpha()}
    return words - _bm_words()


def default_protected() -> set[str]:
    """Words that are never corrected, even when close to a vocabulary word."""
    return (
        _bm_words()
        | _words(ITEM_BLACKLIST)
        | _words(FOOD_ACTION_VERBS)
        | _words(DRINK_ACTION_VERBS)
    )


@dataclass
class SpellingResult:
    """Corrected text and the replacements made.

    Attributes:
        text: Text with typos replaced (unchanged when nothing matched)
        corrections: (original, corrected) pairs in order of appearance
    """

    text: str
    corrections: list[tuple[str, str]] = field(default_factory=list)


class SpellCorrector:
    """Fuzzy single-word typo corrector over a fixed vocabulary.

    Example:
        corrector = SpellCorrector()
        corrector.correct("mild refux").text  # "mild reflux"
    """

    PATTERNS = {
        # Plain alphabetic words; anything glued to digits, apostrophes or
        # hyphens ("7mg", "don't", "grape-nuts") is left as written
        "word": re.compile(r"(?<![\w'\-])[A-Za-z]+(?![\w'\-])"),
    }

    def __init__(
        self,
        vocabulary: Iterable[str] | None = None,
        protected: Iterable[str] | None = None,
        score_cutoff: float = DEFAULT_SCORE_CUTOFF,
    ) -> None:
        self.vocabulary = sorted(set(vocabulary) if vocabulary is not None else default_vocabulary())
        self.protected = set(protected) if protected is not None else default_protected()
        self.score_cutoff = score_cutoff
        self._known = set(self.vocabulary) | self.protected

    def correct_word(self, word: str) -> str | None:
        """Return the vocabulary word closest to ``word``, or None to keep it."""
        lowered = word.lower()
        if len(lowered) < MIN_WORD_LENGTH or lowered in self._known:
            return None
        # Plurals of known words are not typos
        if lowered.endswith("s") and lowered[:-1] in self._known:
            return None

        match = process.extractOne(
            lowered, self.vocabulary, scorer=fuzz.ratio, score_cutoff=self.score_cutoff
        )
        if match is None:
            return None
        return match[0]

    def correct(self, text: str) -> SpellingResult:
        """Correct typos in a message.

        Args:
            text: Raw message text

        Returns:
            SpellingResult; the text is returned as-is when it mentions a
            bowel movement
        """
        if not text or contains_synonym(text, BM_KEYWORDS):
            return SpellingResult(text=text or "")

        corrections: list[tuple[str, str]] = []

        def replace(match: re.Match) -> str:
            word = match.group(0)
            fixed = self.correct_word(word)
            if fixed is None:
                return word
            corrections.append((word, fixed))
            return fixed

        corrected = self.PATTERNS["word"].sub(replace, text)
        if corrections:
            logger.debug(f"Spelling corrected: {corrections}")
        return SpellingResult(text=corrected, corrections=corrections)


_corrector = SpellCorrector()


def correct_spelling(text: str) -> SpellingResult:
    """Correct typos using the default corrector."""
    return _corrector.correct(text)


__all__ = [
    "BM_PROTECTED",
    "DEFAULT_SCORE_CUTOFF",
    "SpellCorrector",
    "SpellingResult",
    "correct_spelling",
    "default_protected",
    "default_vocabulary",
]
