"""Response Cache Bounded Context.

Memoizes read-only tool results by call fingerprint with TTL expiry, LRU
eviction and pattern-based invalidation by mutating tools.
"""
from .entities import CacheEntry
from .events import CacheInvalidated
from .services import INVALIDATION_RULES, ResponseCache, fingerprint
from .value_objects import CacheStats, CacheTtl

__all__ = [
    "CacheEntry",
    "CacheInvalidated",
    "INVALIDATION_RULES", "ResponseCache", "fingerprint",
    "CacheStats", "CacheTtl",
]
