"""Metrics for in-process caches."""

from dataclasses import dataclass


@dataclass
class CacheMetrics:
    """Counters owned by one cache instance."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0

    def to_dict(self) -> dict[str, int | float]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "hit_ratio": self.hit_ratio,
        }

    @property
    def hit_ratio(self) -> float:
        """Fraction of reads served from the cache."""
        reads = self.hits + self.misses
        if reads == 0:
            return 0.0
        return self.hits / reads
