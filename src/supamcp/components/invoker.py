"""Upstream call path shared by every tool.

Reads go cache lookup -> retry -> error wrap -> cache store. Mutations run
exactly once, are wrapped the same way, and on success evict the cached read
paths they affect.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from supamcp.domains.response_cache import fingerprint
from supamcp.lib.errors import (
    ErrorCategory,
    ErrorContext,
    ToolExecutionError,
    generate_suggestions,
    redact_params,
    wrap_error,
)

if TYPE_CHECKING:
    from supamcp.container import ServiceContainer

logger = logging.getLogger(__name__)


class UpstreamInvoker:
    """Runs upstream calls for tool handlers with caching, retries and wrapping."""

    def __init__(self, container: "ServiceContainer") -> None:
        self.container = container

    def resolve_project(self, project_id: Optional[str], tool: str = "") -> str:
        """Return the explicit project id or the configured default.

        Raises:
            ToolExecutionError: If neither is available.
        """
        resolved = (project_id or "").strip() or self.container.config.project_ref
        if not resolved:
            context = ErrorContext(tool=tool)
            raise ToolExecutionError(
                f"Error in {tool}: project_id is required (or set SUPAMCP_PROJECT_REF)",
                category=ErrorCategory.VALIDATION,
                suggestions=generate_suggestions(ErrorCategory.VALIDATION, context),
                context=context,
            )
        return resolved

    async def read(
        self,
        tool: str,
        params: Dict[str, Any],
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
        project_id: Optional[str] = None,
    ) -> Any:
        """Run an idempotent upstream read.

        Args:
            tool: Tool name, used for the cache key and error context
            params: Upstream parameters identifying the call
            fetch: Zero-argument coroutine function performing the call
            ttl: Cache TTL in seconds; None bypasses the cache
            project_id: Project the call targets

        Returns:
            The upstream result (a private copy when served from cache)

        Raises:
            ToolExecutionError: When the call fails after retries
        """
        retry = self.container.retry

        async def call() -> Any:
            return await retry.execute(fetch, idempotent=True, description=tool)

        cache = self.container.cache if ttl is not None else None
        try:
            if cache is not None:
                return await cache.get_or_fetch(fingerprint(tool, params), call, ttl)
            return await call()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise self._wrap(e, tool, params, project_id) from e

    async def mutate(
        self,
        tool: str,
        params: Dict[str, Any],
        call: Callable[[], Awaitable[Any]],
        project_id: Optional[str] = None,
        invalidate: bool = True,
    ) -> Any:
        """Run a mutating upstream call exactly once.

        On success the invalidation rules declared for ``tool`` are applied.
        """
        try:
            result = await self.container.retry.execute(call, idempotent=False, description=tool)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise self._wrap(e, tool, params, project_id) from e

        cache = self.container.cache
        if invalidate and cache is not None:
            removed = cache.invalidate_for(tool)
            if removed:
                logger.debug(f"{tool}: evicted {removed} cached read results")
        return result

    @staticmethod
    def _wrap(
        error: Exception, tool: str, params: Dict[str, Any], project_id: Optional[str],
    ) -> ToolExecutionError:
        wrapped = wrap_error(error, ErrorContext(tool=tool, params=params, project_id=project_id))
        logger.warning(
            f"{tool} failed ({wrapped.category.value}): {wrapped.message} "
            f"params={redact_params(params)}"
        )
        return wrapped
