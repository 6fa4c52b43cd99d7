"""
Core cache data structures.
"""
from dataclasses import dataclass
from enum import Enum


class SelectionType(Enum):
    """Featured-movie selection periods."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class CacheMetrics:
    """
    Snapshot of facade hit/miss counters.

    hit_rate is hits / (hits + misses), 0.0 before any lookup.
    """
    hits: int = 0
    misses: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.hits / self.total

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": self.hit_rate,
        }
