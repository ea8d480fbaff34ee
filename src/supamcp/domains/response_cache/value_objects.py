"""Response Cache Value Objects."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class CacheTtl(float, Enum):
    """TTL classes in seconds, by how often the underlying data changes."""
    LONG = 300.0      # Rarely changes (extension list)
    STANDARD = 120.0  # Schema metadata (tables, generated types)
    SHORT = 30.0      # Frequently changes (migration list)


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache counters."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "size": self.size,
            "hit_rate": round(self.hit_rate, 4),
        }
