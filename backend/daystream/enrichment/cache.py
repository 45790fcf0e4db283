"""Bounded in-memory TTL cache for enrichment lookups.

Process-level and shared across runs; nothing in the core loop depends on it.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from backend.daystream.config import Settings

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Cache entry with TTL."""

    value: T
    cached_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        """Check if entry is still fresh."""
        return now - self.cached_at < self.ttl_seconds


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    evictions: int
    size: int
    hit_rate: float


class TTLCache(Generic[T]):
    """Key-value store with TTL and oldest-entry eviction at capacity."""

    def __init__(
        self,
        ttl_seconds: float = 24 * 3600,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "TTLCache[T]":
        return cls(
            ttl_seconds=settings.enrichment_cache_ttl_seconds,
            max_entries=settings.enrichment_cache_max_entries,
        )

    def get(self, key: str) -> T | None:
        """Get cached value if fresh, None otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if not entry.is_fresh(self._clock()):
            # Expired - remove
            del self._entries[key]
            self._misses += 1
            return None
        self._hits += 1
        return entry.value

    def set(self, key: str, value: T, ttl_seconds: float | None = None) -> None:
        """Store value, evicting the oldest entry when full."""
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k].cached_at)
            del self._entries[oldest]
            self._evictions += 1

        self._entries[key] = CacheEntry(
            value=value,
            cached_at=self._clock(),
            ttl_seconds=self.ttl_seconds if ttl_seconds is None else ttl_seconds,
        )

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            size=len(self._entries),
            hit_rate=self._hits / lookups if lookups else 0.0,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        return key in self._entries
