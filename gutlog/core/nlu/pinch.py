"""Model adapter ("pinch"): a tiny, bounded, JSON-only model call.

Only used when the rules pass is not confident enough. One attempt per
message under a hard wall-clock budget; any failure returns None and the
caller keeps the rules result.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING, Any

from .cache import ExtractionCache
from .disambiguate import severity_from_words
from .ontology import clamp_bristol, clamp_severity, normalize_text
from .taxonomy import coerce_intent

if TYPE_CHECKING:
    from ..backends import ExtractionBackend
    from .metrics import NLUMetrics

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 0.8
DEFAULT_MAX_TOKENS = 64

SYSTEM_PROMPT = """\
You are a strict information extractor for GI tracking. Return ONLY strict \
JSON with this exact schema:
{"intent":"food|drink|symptom|reflux|bm|checkin|other","slots":{},"confidence":0.0,"missing":[]}

Rules:
- Choose ONE intent only (food, drink, symptom, reflux, bm, checkin, or other)
- For food/drink: slots {item, meal_time?, quantity?, brand?, time?}
- For symptom: slots {symptom_type in "reflux"|"pain"|"bloat"|"nausea"|"general", severity 1..10?, time?}
- For reflux: slots {severity 1..10?, time?}
- For bm: slots {bristol 1..7?, time?}
- Return confidence 0.0-1.0
- List missing critical slots in "missing" array
- NO prose, NO explanations, NO markdown"""


def normalize_for_cache(text: str) -> str:
    """Normalize text into a cache key (lower-case, trimmed, single spaces)."""
    return normalize_text(text)


def _loads_object(content: Any) -> dict[str, Any] | None:
    """Parse a JSON object, tolerating stray text around it."""
    if not isinstance(content, str):
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        start, end = content.find("{"), content.rfind("}")
        if start < 0 or end <= start:
            return None
        try:
            data = json.loads(content[start : end + 1])
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def sanitize_extraction(data: dict[str, Any]) -> dict[str, Any] | None:
    """Validate and clean a raw model extraction.

    Returns None when the intent is missing or not a known intent. Slots with
    null values are dropped. Severity words ("severe") map onto the 1-10
    scale and win over digits in the same string; otherwise severity and
    Bristol are clamped, and dropped if they are not numeric.
    """
    intent = coerce_intent(data.get("intent"))
    if intent is None:
        return None

    raw_slots = data.get("slots")
    slots: dict[str, Any] = {}
    if isinstance(raw_slots, dict):
        for key, value in raw_slots.items():
            if value is None or value == "":
                continue
            if key == "severity":
                worded = severity_from_words(value) if isinstance(value, str) else None
                value = worded if worded is not None else clamp_severity(value)
            elif key == "bristol":
                value = clamp_bristol(value)
            if value is not None:
                slots[str(key)] = value

    # Validate and clamp confidence to [0.0, 1.0]
    try:
        confidence = max(0.0, min(1.0, float(data.get("confidence", 0.5))))
    except (ValueError, TypeError):
        confidence = 0.5

    raw_missing = data.get("missing")
    missing = [str(m) for m in raw_missing if isinstance(m, str)] if isinstance(raw_missing, list) else []

    return {
        "intent": intent.value,
        "slots": slots,
        "confidence": confidence,
        "missing": missing,
    }


class ModelAdapter:
    """Bounded model extraction with a result cache.

    The backend is injected and connected lazily on first use. The adapter
    never raises from ``extract()``.

    Attributes:
        backend: Transport used for completions (None disables the model)
        cache: Normalized-text → extraction cache
        timeout_s: Hard wall-clock budget per call
        max_tokens: Output cap sent to the model
        metrics: Optional counters for fallback usage and failures
    """

    def __init__(
        self,
        backend: "ExtractionBackend | None",
        cache: ExtractionCache | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        metrics: "NLUMetrics | None" = None,
    ) -> None:
        self.backend = backend
        self.cache = cache if cache is not None else ExtractionCache()
        self.timeout_s = timeout_s
        self.max_tokens = max_tokens
        self.metrics = metrics

    @property
    def available(self) -> bool:
        """Check if a backend is configured."""
        return self.backend is not None

    async def extract(self, text: str) -> dict[str, Any] | None:
        """Extract intent and slots for a message.

        Args:
            text: Raw user message

        Returns:
            Sanitized {intent, slots, confidence, missing} dict, or None on
            timeout, transport error, malformed output, or no backend
        """
        key = normalize_for_cache(text)
        if not key:
            return None

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Extraction cache hit: {key!r}")
            self._record_fallback(cache_hit=True)
            return cached

        if self.backend is None:
            return None

        self._record_fallback(cache_hit=False)
        start = time.monotonic()
        try:
            content = await asyncio.wait_for(self._call(text), timeout=self.timeout_s)
            data = _loads_object(content)
            extraction = sanitize_extraction(data) if data is not None else None
        except asyncio.TimeoutError:
            logger.warning(f"Model extraction timed out after {self.timeout_s:.2f}s")
            self._record_failure()
            return None
        except Exception as e:
            logger.warning(f"Model extraction failed: {e}")
            self._record_failure()
            return None

        if extraction is None:
            logger.warning(f"Model returned malformed extraction: {str(content)[:200]!r}")
            self._record_failure()
            return None

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"Model extraction ok ({elapsed_ms:.0f}ms): {extraction['intent']} "
            f"{extraction['confidence']:.2f}"
        )
        self.cache.set(key, extraction)
        return extraction

    async def _call(self, text: str) -> str:
        assert self.backend is not None
        if not self.backend.is_loaded:
            await self.backend.load()
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ]
        return await self.backend.complete(messages, max_tokens=self.max_tokens, temperature=0.0)

    async def close(self) -> None:
        """Close the backend's client, if any."""
        if self.backend is not None:
            try:
                await self.backend.close()
            except Exception as e:
                logger.warning(f"Failed to close model backend: {e}")

    def _record_fallback(self, cache_hit: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_fallback(cache_hit=cache_hit)

    def _record_failure(self) -> None:
        if self.metrics is not None:
            self.metrics.record_model_failure()


__all__ = [
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TIMEOUT_S",
    "ModelAdapter",
    "SYSTEM_PROMPT",
    "normalize_for_cache",
    "sanitize_extraction",
]
