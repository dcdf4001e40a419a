"""Understanding pipeline orchestrator for gutlog.

Flow for one message:
1. Rules parse (~1ms)
2. Learned-phrase override, when a lexicon and user id are supplied
3. Fallback gate - confident, complete results skip straight to step 6
4. Model extraction (cache or one bounded call) merged into the rules result
5. Disambiguation of what is still weak
6. Postprocessing into slots + canonical notes

The pipeline degrades gracefully: without a model backend, or when the
model times out, the rules result is used as-is.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from .cache import ExtractionCache
from .disambiguate import disambiguate
from .gate import needs_fallback
from .lexicon import PhraseLexicon, UserContext, apply_learned_phrase
from .merge import merge_results
from .metrics import NLUMetrics
from .ontology import normalize_text
from .pinch import ModelAdapter
from .postprocess import postprocess
from .rules import RulesParser
from .taxonomy import CLARIFICATION_NEEDED, Decision, ParseConfidence, ParseResult

if TYPE_CHECKING:
    from ...config import NLUConfig

logger = logging.getLogger(__name__)


def decide(result: ParseResult, escalated: bool) -> str:
    """Assign the acceptance tier for a final result.

    Args:
        result: Result after merge and disambiguation
        escalated: True if the fallback gate asked for the model

    Returns:
        One of the Decision values
    """
    if not escalated:
        return Decision.STRICT if result.is_strict() else Decision.LENIENT
    if CLARIFICATION_NEEDED in result.missing or result.critical_missing():
        return Decision.NEEDS_CLARIFICATION
    if result.source == "merged":
        return Decision.RESCUED
    if result.confidence < ParseConfidence.REJECT_BELOW:
        return Decision.REJECTED
    return Decision.LENIENT


class Understander:
    """Main understanding pipeline.

    Attributes:
        adapter: Optional model adapter for the fallback path
        lexicon: Optional learned-phrase lookup
        metrics: Optional counters, updated once per message
        parser: Rules parser
    """

    def __init__(
        self,
        adapter: ModelAdapter | None = None,
        lexicon: PhraseLexicon | None = None,
        metrics: NLUMetrics | None = None,
        clock: Callable[[], datetime] | None = None,
        parser: RulesParser | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            adapter: Model adapter; None runs rules-only
            lexicon: Learned-phrase lookup keyed by user id
            metrics: Counters for acceptance reporting
            clock: Returns "now" for meal-window inference (tests pin this)
            parser: Rules parser (defaults to one using America/Los_Angeles)
        """
        self.adapter = adapter
        self.lexicon = lexicon
        self.metrics = metrics
        self.clock = clock
        self.parser = parser or RulesParser()

    def _now(self) -> datetime | None:
        return self.clock() if self.clock is not None else None

    def _context(self, context: UserContext | None) -> UserContext:
        context = context or UserContext()
        if context.tz is None:
            context = replace(context, tz=self.parser.tz)
        return context

    def _rules_stage(self, text: str, context: UserContext, now: datetime | None) -> ParseResult:
        result = self.parser.parse(text, now=now, tz=context.tz)

        if self.lexicon is not None and context.user_id:
            try:
                learned = self.lexicon.lookup(context.user_id, normalize_text(text))
            except Exception as e:
                logger.warning(f"Learned-phrase lookup failed: {e}")
                learned = None
            if learned is not None:
                logger.debug(f"Learned phrase applied for {context.user_id}")
                result = apply_learned_phrase(result, learned)

        return result

    def _finish(self, result: ParseResult, escalated: bool) -> ParseResult:
        final = postprocess(result, metrics=self.metrics)
        final = final.evolve(decision=decide(final, escalated))
        if self.metrics is not None:
            self.metrics.record(final)
        logger.debug(
            f"Understood: {final.intent.value} {final.confidence:.2f} "
            f"{final.decision} missing={list(final.missing)}"
        )
        return final

    async def understand(self, text: str, context: UserContext | None = None) -> ParseResult:
        """Understand a message through the full pipeline.

        Args:
            text: Raw user message
            context: Optional per-user context

        Returns:
            Final ParseResult with decision and notes set
        """
        context = self._context(context)
        now = self._now()
        result = self._rules_stage(text, context, now)

        if not needs_fallback(result):
            return self._finish(result, escalated=False)

        extraction = None
        if self.adapter is not None:
            extraction = await self.adapter.extract(text)

        merged = merge_results(result, extraction)
        refined = disambiguate(merged, context=context, now=now)
        return self._finish(refined, escalated=True)

    def understand_sync(self, text: str, context: UserContext | None = None) -> ParseResult:
        """Synchronous version of understand() - skips the model stage.

        Useful for tests, benchmarks, or callers without an event loop.

        Args:
            text: Raw user message
            context: Optional per-user context

        Returns:
            ParseResult from rules, learned phrases and postprocessing only
        """
        context = self._context(context)
        result = self._rules_stage(text, context, self._now())
        return self._finish(result, escalated=needs_fallback(result))

    async def close(self) -> None:
        """Release the model backend, if any."""
        if self.adapter is not None:
            await self.adapter.close()


def create_understander(
    config: "NLUConfig | None" = None,
    lexicon: PhraseLexicon | None = None,
    use_model: bool = True,
) -> Understander:
    """Factory function to create a fully wired Understander.

    Args:
        config: NLU configuration (defaults to environment settings)
        lexicon: Optional learned-phrase lookup
        use_model: Set False to build a rules-only pipeline

    Returns:
        Configured Understander; the model backend connects on first use
    """
    from ...config import NLUConfig
    from ..backends import create_backend

    config = config or NLUConfig()
    metrics = NLUMetrics()

    adapter = None
    backend = create_backend(config) if use_model else None
    if backend is not None:
        adapter = ModelAdapter(
            backend,
            cache=ExtractionCache(
                max_entries=config.cache.max_entries,
                ttl_seconds=config.cache.ttl_seconds,
            ),
            timeout_s=config.model.timeout_ms / 1000,
            max_tokens=config.model.max_tokens,
            metrics=metrics,
        )
    elif use_model:
        logger.info("No model backend configured; running rules-only")

    return Understander(
        adapter=adapter,
        lexicon=lexicon,
        metrics=metrics,
        parser=RulesParser(tz=config.timezone),
    )


__all__ = ["Understander", "create_understander", "decide"]
