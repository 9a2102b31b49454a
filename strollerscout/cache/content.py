"""Bounded in-memory content cache with TTL expiry and FIFO eviction."""

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from strollerscout.cache.metrics import CacheMetrics


logger = structlog.get_logger()

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CachedEntry(Generic[V]):
    """A cached value and the monotonic time it was stored."""

    value: V
    inserted_at: float


class ContentCache(Generic[K, V]):
    """Key-value cache for idempotent upstream lookups.

    - Entries older than ``ttl_seconds`` are dropped when next read;
      there is no background sweep.
    - At ``max_entries`` the earliest-inserted key is evicted to admit a
      new one. Reads never reorder entries, so this is FIFO rather than
      LRU; dict insertion order provides it directly.
    - Operations never await, so each one is atomic on the event loop.
      Two requests missing the same key may both fetch and both write;
      the later write wins.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "content",
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Maximum entry age before it reads as absent.
            max_entries: Capacity bound.
            clock: Monotonic time source in seconds.
            name: Cache name used in log events.

        Raises:
            ValueError: If ttl_seconds or max_entries is not positive.
        """
        if ttl_seconds <= 0:
            msg = f"ttl_seconds must be positive, got {ttl_seconds}"
            raise ValueError(msg)
        if max_entries <= 0:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)

        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[K, CachedEntry[V]] = {}
        self.metrics = CacheMetrics()
        self._log = logger.bind(component="cache", cache=name)

    @property
    def ttl_seconds(self) -> float:
        """Entry time-to-live in seconds."""
        return self._ttl_seconds

    @property
    def max_entries(self) -> int:
        """Capacity bound."""
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        """Read a value, expiring it lazily.

        Args:
            key: Cache key.

        Returns:
            Stored value, or None if absent or expired.
        """
        entry = self._entries.get(key)
        if entry is None:
            self.metrics.misses += 1
            return None

        if self._clock() - entry.inserted_at > self._ttl_seconds:
            del self._entries[key]
            self.metrics.expirations += 1
            self.metrics.misses += 1
            self._log.debug("cache_entry_expired", key=str(key))
            return None

        self.metrics.hits += 1
        return entry.value

    def set(self, key: K, value: V) -> None:
        """Store a value, evicting the oldest entry when full.

        Overwriting an existing key refreshes its timestamp but keeps its
        original position in eviction order.

        Args:
            key: Cache key.
            value: Value to store.
        """
        if key not in self._entries and len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self.metrics.evictions += 1
            self._log.debug("cache_entry_evicted", key=str(oldest))

        self._entries[key] = CachedEntry(value=value, inserted_at=self._clock())

    def reset(self) -> None:
        """Drop every entry and zero the metrics."""
        self._entries.clear()
        self.metrics = CacheMetrics()
