"""Deterministic rules parser for gutlog messages.

Classification is a priority cascade evaluated in a fixed order. Each tier is
a ``(name, predicate, handler)`` triple; enrichment tiers fill slots and let
the cascade continue, classifying tiers return a result and stop it. Later
tiers are linguistically broader, so specific vocabulary (bowel movements,
reflux) is checked before item extraction gets a chance to claim the text.

The parser never raises. Any internal failure is logged and turned into the
``other`` / clarification result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, NamedTuple

from .ontology import (
    BM_DESCRIPTORS,
    BM_KEYWORDS,
    BRISTOL_BY_DESCRIPTOR,
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
    extract_numeric_bristol,
    extract_numeric_severity,
    extract_severity_from_adjectives,
    find_synonym,
    find_synonym_group,
    infer_meal_window,
    matches_checkin,
    normalize_text,
)
from .spelling import SpellCorrector
from .taxonomy import (
    CLARIFICATION_NEEDED,
    Intent,
    ParseConfidence,
    ParseResult,
    critical_slots_for,
)
from .timeparse import DEFAULT_TIMEZONE, TimeExtractor, infer_meal_time

logger = logging.getLogger(__name__)

# Messages are short; anything longer is truncated before matching
MAX_INPUT_LENGTH = 2_000

MEAL_TIME_INFERRED_NOTE = "inferred from current time"
MEAL_TIME_FROM_CLOCK_NOTE = "inferred from stated time"
ADJECTIVE_NOTE = "auto-detected from adjective"

ALL_DRINK_WORDS: list[str] = sorted(
    {word for words in DRINK_SYNONYMS.values() for word in words}, key=len, reverse=True
)

# Phrases containing "and" that name a single item
COMPOUND_ITEMS = (
    "mac and cheese",
    "peanut butter and jelly",
    "fish and chips",
    "half and half",
    "salt and vinegar",
    "rice and beans",
)

PATTERNS = {
    # "for breakfast", "at lunch", "during dinner" and anything after it
    "meal_suffix": re.compile(
        r"\s+(?:for|at|during)\s+(?:breakfast|lunch|dinner|snack)\b.*$", re.IGNORECASE
    ),
    # "2 cups", "a bowl of", "half a", "250ml", "100 g"
    "quantity": re.compile(
        r"\b((?:\d+(?:\.\d+)?|a|an|one|two|three|four|half\s+a|a\s+couple\s+of)\s*"
        r"(cups?|glass(?:es)?|mugs?|bowls?|slices?|pieces?|oz|ounces?|ml|g|grams?|"
        r"servings?|plates?|cans?|bottles?|handfuls?|scoops?|shots?))\b(?:\s+of\b)?",
        re.IGNORECASE,
    ),
    "size": re.compile(r"\b(small|medium|large|grande|venti|tall|short)\b", re.IGNORECASE),
    "clock": re.compile(
        r"\b(?:at\s+)?(?:\d{1,2}(?::\d{2})?\s*[ap]\.?\s*m\b\.?|\d{1,2}:\d{2}|noon|midnight)",
        re.IGNORECASE,
    ),
    "side_split": re.compile(r"\s*(?:,|&|\+|\bwith\b|\band\b|\bplus\b)\s*", re.IGNORECASE),
    "token": re.compile(r"[^\W_][\w'\-]*"),
}


@dataclass
class ItemExtraction:
    """Food/drink item details found in a message.

    Attributes:
        item: Main item phrase
        sides: Side items joined with " & "
        anchored: True when the item contains a known food/drink noun or brand
        quantity: Quantity phrase ("2 cups", "a bowl")
        extras: Additional slots (brand, size, portion_g, flags)
    """

    item: str | None = None
    sides: str | None = None
    anchored: bool = False
    quantity: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParseState:
    """Working state for a single parse.

    ``text`` is the message after typo correction; ``raw_text`` is what the
    user actually wrote.
    """

    text: str
    lowered: str
    now: datetime | None
    tz: str
    raw_text: str = ""
    slots: dict[str, Any] = field(default_factory=dict)
    _items: ItemExtraction | None = None

    @property
    def items(self) -> ItemExtraction:
        """Item extraction, computed on first use."""
        if self._items is None:
            self._items = extract_items(self.text)
        return self._items

    @property
    def has_food_verb(self) -> bool:
        return contains_synonym(self.lowered, FOOD_ACTION_VERBS)

    @property
    def has_drink_verb(self) -> bool:
        return contains_synonym(self.lowered, DRINK_ACTION_VERBS)


class Tier(NamedTuple):
    """One step of the classification cascade.

    The handler returns a ParseResult to stop the cascade, or None after
    filling slots to let later tiers run.
    """

    name: str
    predicate: Callable[[ParseState], bool]
    handler: Callable[[ParseState], "ParseResult | None"]


# =============================================================================
# Item extraction
# =============================================================================


def _tokens(text: str) -> list[str]:
    return PATTERNS["token"].findall(text)


def _chunks(tokens: list[str]) -> list[str]:
    """Split tokens into runs of content words."""
    verbs = set(FOOD_ACTION_VERBS) | set(DRINK_ACTION_VERBS)
    chunks: list[str] = []
    current: list[str] = []
    for token in tokens:
        if token in ITEM_BLACKLIST or token in verbs or token.replace(".", "").isdigit():
            if current:
                chunks.append(" ".join(current))
                current = []
            continue
        current.append(token)
    if current:
        chunks.append(" ".join(current))
    return [chunk.replace("_and_", " and ") for chunk in chunks]


def _find_brand(lowered: str) -> str | None:
    for brand in sorted(KNOWN_BRANDS, key=len, reverse=True):
        if contains_synonym(lowered, [brand.lower()]):
            return brand
    return None


def _is_anchored(chunk: str, brand: str | None) -> bool:
    if brand and brand.lower() in chunk:
        return True
    return contains_synonym(chunk, FOOD_HEAD_NOUNS) or contains_synonym(chunk, ALL_DRINK_WORDS)


def _longest(chunks: list[str]) -> str | None:
    # Longest wins; on ties the later chunk is usually the head of the phrase
    best: str | None = None
    for chunk in chunks:
        if best is None or len(chunk.split()) >= len(best.split()):
            best = chunk
    return best


def extract_items(text: str) -> ItemExtraction:
    """Extract the main item, sides, quantity, brand and diet flags."""
    result = ItemExtraction()
    lowered = normalize_text(text)
    has_verb = contains_synonym(lowered, FOOD_ACTION_VERBS + DRINK_ACTION_VERBS)

    # Flags are read from the whole message
    if contains_synonym(lowered, NON_DAIRY_MARKERS):
        result.extras["non_dairy"] = True
    elif contains_synonym(lowered, DAIRY_MARKERS):
        result.extras["dairy"] = True
    if contains_synonym(lowered, DECAF_MARKERS):
        result.extras["decaf"] = True
    elif contains_synonym(lowered, CAFFEINE_MARKERS):
        result.extras["caffeine"] = True

    brand = _find_brand(lowered)
    if brand:
        result.extras["brand"] = brand

    working = PATTERNS["meal_suffix"].sub("", lowered)
    working = PATTERNS["clock"].sub(" ", working)

    quantity_match = PATTERNS["quantity"].search(working)
    if quantity_match:
        result.quantity = re.sub(r"\s+", " ", quantity_match.group(1)).strip()
        amount, unit = quantity_match.group(1), quantity_match.group(2)
        number = re.match(r"\d+(?:\.\d+)?", amount)
        if number and unit in ("g", "gram", "grams"):
            result.extras["portion_g"] = number.group()
        elif number and unit == "ml":
            result.extras["portion_ml"] = number.group()
        working = working[: quantity_match.start()] + " " + working[quantity_match.end() :]

    size_match = PATTERNS["size"].search(working)
    if size_match:
        result.extras["size"] = size_match.group(1).lower()

    for compound in COMPOUND_ITEMS:
        working = working.replace(compound, compound.replace(" and ", "_and_"))

    segments = [s for s in PATTERNS["side_split"].split(working) if s and s.strip()]
    segment_chunks = [_chunks(_tokens(segment)) for segment in segments]

    main_index: int | None = None
    for index, chunks in enumerate(segment_chunks):
        anchored = [c for c in chunks if _is_anchored(c, brand)]
        if anchored:
            result.item = _longest(anchored)
            result.anchored = True
            main_index = index
            break

    if result.item is None and has_verb:
        for index, chunks in enumerate(segment_chunks):
            if chunks:
                result.item = _longest(chunks)
                main_index = index
                break

    if main_index is not None:
        sides: list[str] = []
        for chunks in segment_chunks[main_index + 1 :]:
            side = _longest(chunks)
            if side and side != result.item and side not in sides:
                sides.append(side)
        if sides:
            result.sides = " & ".join(sides)

    return result


def item_kind(item: str | None) -> str | None:
    """Classify an item phrase as "food" or "drink" by its head word."""
    if not item:
        return None
    for word in ALL_DRINK_WORDS:
        if re.search(rf"(?<![\w]){re.escape(word)}$", item):
            return "drink"
    if contains_synonym(item, FOOD_HEAD_NOUNS):
        return "food"
    if contains_synonym(item, ALL_DRINK_WORDS):
        return "drink"
    return None


# =============================================================================
# Parser
# =============================================================================


class RulesParser:
    """Deterministic first-pass parser.

    Attributes:
        tz: Timezone name used for meal-window inference
        spell_corrector: Typo corrector applied before any tier runs
        tiers: Ordered classification cascade
    """

    def __init__(self, tz: str = DEFAULT_TIMEZONE, spell_corrector: SpellCorrector | None = None) -> None:
        self.tz = tz
        self.time_extractor = TimeExtractor()
        self.spell_corrector = spell_corrector if spell_corrector is not None else SpellCorrector()
        self.tiers: list[Tier] = [
            Tier("time", lambda s: True, self._extract_time),
            Tier("meal_time", lambda s: True, self._extract_meal_time),
            Tier("bm", lambda s: contains_synonym(s.lowered, BM_KEYWORDS), self._handle_bm),
            Tier("reflux", lambda s: contains_synonym(s.lowered, REFLUX_KEYWORDS), self._handle_reflux),
            Tier(
                "symptom",
                lambda s: find_synonym_group(s.lowered, SYMPTOM_GROUPS) is not None,
                self._handle_symptom,
            ),
            Tier(
                "general",
                lambda s: contains_synonym(s.lowered, GENERAL_FEELING_KEYWORDS),
                self._handle_general,
            ),
            Tier("checkin", lambda s: matches_checkin(s.lowered), self._handle_checkin),
            Tier("drink", self._is_drink, self._handle_drink),
            Tier("food", lambda s: bool(s.items.item) or s.has_food_verb, self._handle_food),
        ]

    def parse(
        self, text: str, now: datetime | None = None, tz: str | None = None
    ) -> ParseResult:
        """Parse a message into an intent and slots.

        Args:
            text: Raw user message
            now: Current time for meal-window inference (defaults to the clock)
            tz: Timezone override for this message

        Returns:
            ParseResult; intent "other" with clarification_needed when nothing matched
        """
        try:
            return self._parse(text, now, tz or self.tz)
        except Exception as e:
            logger.warning(f"Rules parsing failed: {e}", exc_info=True)
            return ParseResult.clarification(source="rules")

    def _parse(self, text: str, now: datetime | None, tz: str) -> ParseResult:
        text = (text or "").strip()
        if len(text) > MAX_INPUT_LENGTH:
            logger.warning(f"Input truncated from {len(text)} to {MAX_INPUT_LENGTH} chars")
            text = text[:MAX_INPUT_LENGTH]

        corrected = self.spell_corrector.correct(text).text
        state = ParseState(
            text=corrected, lowered=normalize_text(corrected), now=now, tz=tz, raw_text=text
        )
        if not state.lowered:
            return ParseResult.clarification(source="rules")

        for tier in self.tiers:
            if not tier.predicate(state):
                continue
            result = tier.handler(state)
            if result is not None:
                logger.debug(f"Tier {tier.name} matched: {result.intent.value} {result.confidence}")
                return result

        return ParseResult(
            intent=Intent.OTHER,
            confidence=ParseConfidence.FALLBACK,
            slots=state.slots,
            missing=(CLARIFICATION_NEEDED,),
            source="rules",
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _finish(intent: Intent, confidence: float, slots: dict[str, Any]) -> ParseResult:
        """Build a result, capping confidence when a critical slot is unfilled."""
        missing = tuple(name for name in critical_slots_for(intent) if slots.get(name) is None)
        if missing:
            confidence = min(confidence, ParseConfidence.INCOMPLETE_CAP)
        return ParseResult(
            intent=intent, confidence=confidence, slots=slots, missing=missing, source="rules"
        )

    @staticmethod
    def _fill_severity(state: ParseState, ignore: str | None = None) -> None:
        # Words inside the phrase that set the intent are not severity ("bad day")
        text = state.lowered
        if ignore:
            text = re.sub(rf"\b{re.escape(ignore)}\b", " ", text)
        severity = extract_numeric_severity(text)
        if severity is None:
            severity = extract_severity_from_adjectives(text)
            if severity is not None:
                state.slots["severity_note"] = ADJECTIVE_NOTE
        if severity is not None:
            state.slots["severity"] = severity

    def _fill_meal_time(self, state: ParseState) -> None:
        if state.slots.get("meal_time"):
            return
        clock = state.slots.get("time")
        if clock:
            state.slots["meal_time"] = infer_meal_window(int(clock.split(":")[0]))
            state.slots["meal_time_note"] = MEAL_TIME_FROM_CLOCK_NOTE
        else:
            state.slots["meal_time"] = infer_meal_time(state.now, state.tz)
            state.slots["meal_time_note"] = MEAL_TIME_INFERRED_NOTE

    def _fill_items(self, state: ParseState) -> None:
        items = state.items
        if items.item:
            state.slots["item"] = items.item
        if items.sides:
            state.slots["sides"] = items.sides
        if items.quantity:
            state.slots["quantity"] = items.quantity
        for key, value in items.extras.items():
            state.slots.setdefault(key, value)

    # -------------------------------------------------------------------------
    # Tiers
    # -------------------------------------------------------------------------

    def _extract_time(self, state: ParseState) -> None:
        info = self.time_extractor.extract(state.text)
        if info.time:
            state.slots["time"] = info.time
        if info.approx:
            state.slots["time_approx"] = info.approx
        if info.meal_time:
            state.slots["meal_time"] = info.meal_time
        return None

    def _extract_meal_time(self, state: ParseState) -> None:
        # A stated meal overrides one implied by a daypart phrase
        meal = find_synonym_group(state.lowered, MEAL_TIME_SYNONYMS)
        if meal:
            state.slots["meal_time"] = meal
        return None

    def _handle_bm(self, state: ParseState) -> ParseResult:
        bristol = extract_numeric_bristol(state.lowered)
        if bristol is not None:
            state.slots["bristol"] = bristol
        else:
            descriptor = find_synonym_group(state.lowered, BM_DESCRIPTORS)
            if descriptor:
                word = find_synonym(state.lowered, BM_DESCRIPTORS[descriptor])
                state.slots["bristol"] = BRISTOL_BY_DESCRIPTOR[descriptor]
                state.slots["bristol_note"] = f"auto-detected from {word}"
        return self._finish(Intent.BM, ParseConfidence.BM, state.slots)

    def _handle_reflux(self, state: ParseState) -> ParseResult:
        self._fill_severity(state)
        return self._finish(Intent.REFLUX, ParseConfidence.REFLUX, state.slots)

    def _handle_symptom(self, state: ParseState) -> ParseResult:
        state.slots["symptom_type"] = find_synonym_group(state.lowered, SYMPTOM_GROUPS)
        self._fill_severity(state)
        return self._finish(Intent.SYMPTOM, ParseConfidence.SYMPTOM, state.slots)

    def _handle_general(self, state: ParseState) -> ParseResult:
        state.slots["symptom_type"] = "general"
        self._fill_severity(state, ignore=find_synonym(state.lowered, GENERAL_FEELING_KEYWORDS))
        return self._finish(Intent.SYMPTOM, ParseConfidence.GENERAL, state.slots)

    def _handle_checkin(self, state: ParseState) -> ParseResult:
        state.slots["note"] = state.raw_text or state.text
        return self._finish(Intent.CHECKIN, ParseConfidence.CHECKIN, state.slots)

    def _is_drink(self, state: ParseState) -> bool:
        kind = item_kind(state.items.item)
        if kind == "drink":
            return True
        # A branded or noun-anchored item outranks a drink word elsewhere in the text
        if kind is None and not state.items.anchored and contains_synonym(state.lowered, ALL_DRINK_WORDS):
            return True
        return state.has_drink_verb and not state.has_food_verb

    def _handle_drink(self, state: ParseState) -> ParseResult:
        self._fill_items(state)
        if not state.slots.get("item"):
            word = find_synonym(state.lowered, ALL_DRINK_WORDS)
            if word:
                state.slots["item"] = word
        self._fill_meal_time(state)
        return self._finish(Intent.DRINK, ParseConfidence.DRINK, state.slots)

    def _handle_food(self, state: ParseState) -> ParseResult:
        self._fill_items(state)
        self._fill_meal_time(state)
        return self._finish(Intent.FOOD, ParseConfidence.FOOD, state.slots)


# Module-level instance for convenience
_parser = RulesParser()


def rules_parse(text: str, now: datetime | None = None) -> ParseResult:
    """Parse text with the default rules parser.

    Args:
        text: Raw user message
        now: Current time for meal-window inference

    Returns:
        ParseResult from the deterministic pass
    """
    return _parser.parse(text, now=now)


__all__ = [
    "ItemExtraction",
    "MEAL_TIME_INFERRED_NOTE",
    "RulesParser",
    "Tier",
    "extract_items",
    "item_kind",
    "rules_parse",
]
