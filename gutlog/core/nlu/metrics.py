"""Acceptance and coverage counters for the understanding pipeline.

Counters are exposed for reporting (CLI bench, dashboards) and are never
read by the pipeline itself.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable

from .taxonomy import Decision, ParseResult

# Target share of messages that reach the model
FALLBACK_RATE_TARGET = 0.25


@dataclass
class _IntentStats:
    count: int = 0
    confidence_sum: float = 0.0

    @property
    def mean_confidence(self) -> float:
        return self.confidence_sum / self.count if self.count else 0.0


class NLUMetrics:
    """Thread-safe pipeline counters.

    Example:
        metrics = NLUMetrics()
        understander = Understander(metrics=metrics)
        ...
        print(metrics.report()["acceptance"]["strict"])
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        """Zero every counter."""
        with self._lock:
            self._total = 0
            self._decisions: Counter[str] = Counter()
            self._by_intent: dict[str, _IntentStats] = {}
            self._fallback_calls = 0
            self._cache_hits = 0
            self._model_failures = 0
            self._notes_validated = 0
            self._notes_invalid = 0
            self._unknown_keys: Counter[str] = Counter()
            self._started = time.monotonic()

    def record(self, result: ParseResult) -> None:
        """Record a final result's intent, confidence and decision."""
        with self._lock:
            self._total += 1
            stats = self._by_intent.setdefault(result.intent.value, _IntentStats())
            stats.count += 1
            stats.confidence_sum += result.confidence
            self._decisions[result.decision or "unknown"] += 1

    def record_fallback(self, cache_hit: bool = False) -> None:
        """Record a model fallback attempt (served from cache or not)."""
        with self._lock:
            self._fallback_calls += 1
            if cache_hit:
                self._cache_hits += 1

    def record_model_failure(self) -> None:
        """Record a timeout, transport error or malformed model response."""
        with self._lock:
            self._model_failures += 1

    def record_notes(self, invalid: int = 0, unknown_keys: Iterable[str] = ()) -> None:
        """Record one notes canonicalization."""
        with self._lock:
            self._notes_validated += 1
            self._notes_invalid += invalid
            self._unknown_keys.update(unknown_keys)

    @staticmethod
    def _rate(count: int, total: int) -> float:
        return round(count / total, 4) if total else 0.0

    def report(self) -> dict[str, Any]:
        """Return a JSON-friendly snapshot of all counters.

        Rates are fractions in [0, 1].
        """
        with self._lock:
            total = self._total
            acceptance = {
                tier: {"count": self._decisions[tier], "rate": self._rate(self._decisions[tier], total)}
                for tier in (Decision.STRICT, Decision.LENIENT, Decision.RESCUED)
            }
            by_intent = [
                {
                    "intent": intent,
                    "count": stats.count,
                    "rate": self._rate(stats.count, total),
                    "mean_confidence": round(stats.mean_confidence, 3),
                }
                for intent, stats in sorted(
                    self._by_intent.items(), key=lambda kv: kv[1].count, reverse=True
                )
            ]
            return {
                "total": total,
                "uptime_s": round(time.monotonic() - self._started, 1),
                "acceptance": acceptance,
                "clarified": self._decisions[Decision.NEEDS_CLARIFICATION],
                "rejected": self._decisions[Decision.REJECTED],
                "fallback": {
                    "calls": self._fallback_calls,
                    "cache_hits": self._cache_hits,
                    "failures": self._model_failures,
                    "rate": self._rate(self._fallback_calls, total),
                    "target": FALLBACK_RATE_TARGET,
                },
                "by_intent": by_intent,
                "notes": {
                    "validated": self._notes_validated,
                    "invalid": self._notes_invalid,
                    "invalid_rate": self._rate(self._notes_invalid, self._notes_validated),
                    "unknown_keys": dict(self._unknown_keys.most_common(10)),
                },
            }


__all__ = ["FALLBACK_RATE_TARGET", "NLUMetrics"]
