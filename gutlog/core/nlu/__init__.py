"""Message understanding for gutlog health tracking.

Turns a short free-text message ("had oatmeal for breakfast", "bm bristol 4",
"mild reflux") into an intent, typed slots and a canonical notes string.

The pipeline has four stages:
1. Rules parse (~1ms) - Ordered keyword/regex cascade over a fixed ontology
2. Fallback gate - Decides whether the rules result can be trusted
3. Model extraction (<800ms) - One bounded JSON call, cached, merged back in
4. Postprocessing - Slot cleanup and versioned, ordered notes tokens

Example usage:
    ```python
    from gutlog.core.nlu import Intent, create_understander, rules_parse

    # Rules only
    result = rules_parse("bm bristol 4")
    assert result.intent == Intent.BM
    assert result.slots["bristol"] == 4

    # Full pipeline with model fallback
    understander = create_understander()
    result = await understander.understand("stomach pain")
    if result.needs_clarification:
        print(f"Missing: {result.missing}")
    print(result.notes)
    ```
"""

from .cache import CacheStats, ExtractionCache
from .disambiguate import (
    classify_item,
    disambiguate,
    normalize_meal_time,
    normalize_severity,
    resolve_ambiguous_item,
    resolve_conflicts,
    resolve_intent,
)
from .gate import needs_fallback
from .lexicon import (
    InMemoryLexicon,
    LearnedPhrase,
    PhraseLexicon,
    UserContext,
    apply_learned_phrase,
)
from .merge import merge_results
from .metrics import NLUMetrics
from .notes_vocab import CANONICAL_ORDER, NOTES_VERSION
from .pinch import ModelAdapter, sanitize_extraction
from .postprocess import (
    NotesValidation,
    build_notes_tokens,
    canonicalize_notes,
    parse_notes,
    postprocess,
    validate_notes,
)
from .rules import RulesParser, extract_items, rules_parse
from .spelling import SpellCorrector, correct_spelling
from .taxonomy import (
    CLARIFICATION_NEEDED,
    CRITICAL_SLOTS,
    Decision,
    Intent,
    ParseConfidence,
    ParseResult,
)
from .timeparse import TimeExtractor, TimeInfo, extract_time, infer_meal_time
from .understand import Understander, create_understander, decide

__all__ = [
    # Pipeline
    "Understander",
    "create_understander",
    "decide",
    # Taxonomy
    "Intent",
    "Decision",
    "ParseConfidence",
    "ParseResult",
    "CLARIFICATION_NEEDED",
    "CRITICAL_SLOTS",
    # Rules
    "RulesParser",
    "rules_parse",
    "extract_items",
    "SpellCorrector",
    "correct_spelling",
    "TimeExtractor",
    "TimeInfo",
    "extract_time",
    "infer_meal_time",
    # Disambiguation and gating
    "classify_item",
    "disambiguate",
    "normalize_meal_time",
    "normalize_severity",
    "resolve_ambiguous_item",
    "resolve_conflicts",
    "resolve_intent",
    "needs_fallback",
    # Model fallback
    "ModelAdapter",
    "ExtractionCache",
    "CacheStats",
    "sanitize_extraction",
    "merge_results",
    # Learned phrases
    "InMemoryLexicon",
    "LearnedPhrase",
    "PhraseLexicon",
    "UserContext",
    "apply_learned_phrase",
    # Notes
    "CANONICAL_ORDER",
    "NOTES_VERSION",
    "NotesValidation",
    "build_notes_tokens",
    "canonicalize_notes",
    "parse_notes",
    "postprocess",
    "validate_notes",
    # Metrics
    "NLUMetrics",
]
