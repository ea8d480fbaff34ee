"""Entities for the Response Cache Context.

A CacheEntry is identified by its fingerprint key and owned exclusively by
the ResponseCache; callers only ever see copies of its value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """A memoized read-only tool result.

    Entity Identity: the fingerprint ``key``.
    """
    key: str
    value: Any
    stored_at: float
    ttl: float
    last_accessed: float
    hit_count: int = 0

    def is_expired(self, now: float) -> bool:
        """An entry expires once strictly more than ``ttl`` seconds have passed."""
        return now - self.stored_at > self.ttl

    def touch(self, now: float) -> None:
        self.last_accessed = now
        self.hit_count += 1
