"""Dependency Injection Container for supamcp.

This container wires together the bounded contexts and the upstream adapter:
- Response Optimization Context: profiles and the response processor
- Query Governor Context: LIMIT injection for free-form SQL
- Response Cache Context: memoized read-only results (optional)

The container is built explicitly and passed to ``create_server``; there is
no process-wide instance.

Usage:
    from supamcp.container import ServiceContainer
    from supamcp.models.config_models import ServerConfig

    container = ServiceContainer(config=ServerConfig.from_env())
    processor = container.processor
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from supamcp.models.config_models import ServerConfig

if TYPE_CHECKING:
    from supamcp.adapters.base import ManagementPlatform
    from supamcp.domains.query_governor import QueryGovernor
    from supamcp.domains.response_cache import ResponseCache
    from supamcp.domains.response_optimization import (
        InMemoryProfileRepository,
        ResponseProcessor,
    )
    from supamcp.lib.retry import RetryHandler

logger = logging.getLogger(__name__)


def log_event(event: object) -> None:
    """Default event publisher: log the event payload at debug level."""
    to_dict = getattr(event, "to_dict", None)
    payload: Any = to_dict() if callable(to_dict) else event
    logger.debug(f"Domain event: {payload}")


@dataclass
class ServiceContainer:
    """Simple dependency injection container for gateway services.

    Services are created lazily on first access. Any of them can be
    supplied up front, which is how tests inject a fake platform or a
    cache with a controllable clock.

    Attributes:
        config: Server configuration
        event_publisher: Callable receiving every domain event
    """

    config: ServerConfig = field(default_factory=ServerConfig)
    event_publisher: Callable[[object], None] = log_event

    _platform: Optional["ManagementPlatform"] = field(default=None, repr=False)
    _cache: Optional["ResponseCache"] = field(default=None, repr=False)
    _governor: Optional["QueryGovernor"] = field(default=None, repr=False)
    _processor: Optional["ResponseProcessor"] = field(default=None, repr=False)
    _profiles: Optional["InMemoryProfileRepository"] = field(default=None, repr=False)
    _retry: Optional["RetryHandler"] = field(default=None, repr=False)

    @property
    def platform(self) -> "ManagementPlatform":
        """Get the upstream management platform."""
        if self._platform is None:
            from supamcp.adapters.management_api import ManagementApiPlatform
            if not self.config.access_token:
                raise RuntimeError(
                    "SUPABASE_ACCESS_TOKEN must be set to reach the management API"
                )
            self._platform = ManagementApiPlatform(
                access_token=self.config.access_token,
                api_url=self.config.api_url,
                timeout=self.config.http_timeout,
            )
        return self._platform

    @property
    def cache(self) -> Optional["ResponseCache"]:
        """Get the response cache, or None when caching is disabled."""
        if not self.config.cache_enabled:
            return None
        if self._cache is None:
            from supamcp.domains.response_cache import ResponseCache
            self._cache = ResponseCache(
                max_size=self.config.cache_max_size,
                event_publisher=self.event_publisher,
            )
        return self._cache

    @property
    def governor(self) -> "QueryGovernor":
        """Get the query governor."""
        if self._governor is None:
            from supamcp.domains.query_governor import QueryGovernor
            self._governor = QueryGovernor(event_publisher=self.event_publisher)
        return self._governor

    @property
    def processor(self) -> "ResponseProcessor":
        """Get the response processor (cap, project, enforce)."""
        if self._processor is None:
            from supamcp.domains.response_optimization import ResponseProcessor
            self._processor = ResponseProcessor(event_publisher=self.event_publisher)
        return self._processor

    @property
    def profiles(self) -> "InMemoryProfileRepository":
        """Get the tool response profile repository."""
        if self._profiles is None:
            from supamcp.domains.response_optimization import InMemoryProfileRepository
            self._profiles = InMemoryProfileRepository()
        return self._profiles

    @property
    def retry(self) -> "RetryHandler":
        """Get the retry handler for idempotent upstream calls."""
        if self._retry is None:
            from supamcp.lib.retry import RetryHandler
            self._retry = RetryHandler(
                max_attempts=self.config.retry_attempts,
                retry_delay=self.config.retry_delay,
            )
        return self._retry

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the container state."""
        cache = self._cache if self.config.cache_enabled else None
        return {
            "platform_initialized": self._platform is not None,
            "cache_enabled": self.config.cache_enabled,
            "cache": cache.stats().to_dict() if cache is not None else None,
            "read_only": self.config.read_only,
        }

    async def aclose(self) -> None:
        """Release the upstream client and drop cached results."""
        if self._cache is not None:
            self._cache.clear()
        if self._platform is not None:
            try:
                await self._platform.aclose()
            finally:
                self._platform = None
        logger.debug("Service container closed")
