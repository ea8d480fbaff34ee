"""Response Cache Domain Service.

In-process LRU cache with per-entry TTL for read-only tool results. Values
are deep-copied on the way in and out, so callers never share mutable state
with the cache. Expired entries are evicted lazily on access, in bulk by
``cleanup()``, and before a full cache evicts a live entry.
"""
from __future__ import annotations

import copy
import json
import logging
import re
import threading
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Pattern, Tuple, Union

from .entities import CacheEntry
from .events import CacheInvalidated
from .value_objects import CacheStats, CacheTtl

logger = logging.getLogger(__name__)

_MISSING = object()

# Read paths evicted by each mutating tool, as regexes over fingerprints.
INVALIDATION_RULES: Dict[str, Tuple[str, ...]] = {
    "apply_migration": (
        r"^list_migrations::",
        r"^list_tables::",
        r"^generate_typescript_types",
    ),
    "execute_sql": (
        r"^list_tables::",
        r"^generate_typescript_types",
        r"^list_extensions::",
    ),
}


def fingerprint(tool: str, params: Mapping[str, Any]) -> str:
    """Build the cache key for a tool call: ``tool::k1:json|k2:json``.

    Parameter names are sorted and values are compact JSON with sorted keys,
    so equal arguments always produce the same key.
    """
    parts = [
        f"{name}:{json.dumps(params[name], sort_keys=True, separators=(',', ':'), default=str)}"
        for name in sorted(params)
    ]
    return f"{tool}::{'|'.join(parts)}"


class ResponseCache:
    """LRU + TTL cache keyed by call fingerprint.

    A single lock guards the entry map. Concurrent writes to one key are
    last-write-wins.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = float(CacheTtl.LONG),
        clock: Callable[[], float] = time.monotonic,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        if max_size <= 0:
            raise ValueError("Cache max_size must be positive")
        if default_ttl <= 0:
            raise ValueError("Cache default_ttl must be positive")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._event_publisher = event_publisher
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the cached value, or ``default`` when absent or expired."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._misses += 1
                logger.debug(f"Cache miss: {key}")
                return default
            entry.touch(self._clock())
            self._entries.move_to_end(key)
            self._hits += 1
            value = entry.value
        logger.debug(f"Cache hit: {key}")
        return copy.deepcopy(value)

    def contains(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a copy of ``value`` under ``key`` for ``ttl`` seconds."""
        ttl = float(ttl) if ttl is not None else self.default_ttl
        stored = copy.deepcopy(value)
        with self._lock:
            now = self._clock()
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._purge_expired(now)
            if key not in self._entries and len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Cache evicted least recently used entry: {evicted}")
            self._entries[key] = CacheEntry(
                key=key, value=stored, stored_at=now, ttl=ttl, last_accessed=now,
            )
            self._entries.move_to_end(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate(self, pattern: Union[str, Pattern[str]], trigger: str = "") -> int:
        """Remove every key matching ``pattern`` (regex search). Returns the count."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        with self._lock:
            doomed = [key for key in self._entries if regex.search(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.info(f"Invalidated {len(doomed)} cache entries matching {regex.pattern!r}")
            self._publish(CacheInvalidated(pattern=regex.pattern, removed=len(doomed), trigger=trigger))
        return len(doomed)

    def invalidate_for(self, tool_name: str) -> int:
        """Apply the invalidation rules declared for a mutating tool."""
        return sum(
            self.invalidate(pattern, trigger=tool_name)
            for pattern in INVALIDATION_RULES.get(tool_name, ())
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = self._expirations = 0

    def cleanup(self) -> int:
        """Evict all expired entries. Returns the number removed."""
        with self._lock:
            return self._purge_expired(self._clock())

    def _purge_expired(self, now: float) -> int:
        # Caller holds the lock.
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._expirations += len(expired)
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                size=len(self._entries),
            )

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the cached value for ``key``, calling ``fetch`` on a miss.

        Failures from ``fetch`` propagate and nothing is stored.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = await fetch()
        self.set(key, value, ttl)
        return value

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._expirations += 1
            return None
        return entry

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")
