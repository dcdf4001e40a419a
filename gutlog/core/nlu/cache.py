"""Bounded TTL cache for model extractions.

Keys are normalized message text; values are the sanitized extraction dicts
returned by the model adapter. Entries expire ``ttl_seconds`` after they were
last read or written, and the least recently used entry is evicted when the
cache is full. All access goes through one lock, so eviction never races a
lookup.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 500
DEFAULT_TTL_SECONDS = 3 * 24 * 60 * 60  # 3 days


@dataclass
class CacheStats:
    """Counters for cache reporting."""

    size: int
    max_entries: int
    hits: int
    misses: int
    evictions: int
    expirations: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ExtractionCache:
    """Thread-safe LRU cache with a sliding time-to-live.

    Attributes:
        max_entries: Capacity before least recently used entries are evicted
        ttl_seconds: Idle lifetime of an entry
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, dict[str, Any]]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: str) -> dict[str, Any] | None:
        """Return a copy of the cached value, refreshing its age, or None."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            stored_at, value = entry
            if now - stored_at >= self.ttl_seconds:
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None

            self._entries[key] = (now, value)
            self._entries.move_to_end(key)
            self._hits += 1
            return copy.deepcopy(value)

    def set(self, key: str, value: dict[str, Any]) -> None:
        """Store a copy of value, evicting expired then least recent entries."""
        now = self._clock()
        with self._lock:
            self._entries[key] = (now, copy.deepcopy(value))
            self._entries.move_to_end(key)
            self._purge_expired(now)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted cache entry: {evicted!r}")

    def clear(self) -> None:
        """Remove every entry and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = self._expirations = 0

    def stats(self) -> CacheStats:
        """Return a snapshot of cache counters."""
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_entries=self.max_entries,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    def _purge_expired(self, now: float) -> None:
        # Oldest entries are at the front; stop at the first live one
        while self._entries:
            key, (stored_at, _) = next(iter(self._entries.items()))
            if now - stored_at < self.ttl_seconds:
                break
            del self._entries[key]
            self._expirations += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


__all__ = ["CacheStats", "DEFAULT_MAX_ENTRIES", "DEFAULT_TTL_SECONDS", "ExtractionCache"]
