"""Bounded retry for idempotent upstream calls.

Only read-only calls are retried. Mutating calls (``idempotent=False``) run
exactly once. Cancellation is never retried or wrapped.
"""

import asyncio
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Optional

import httpx

from supamcp.lib.errors import ErrorCategory, categorize_error

logger = logging.getLogger(__name__)


def get_retry_after(error: BaseException) -> Optional[float]:
    """Seconds requested by a ``Retry-After`` header on the error, if any.

    Accepts delta-seconds or an HTTP date.
    """
    headers = getattr(error, "headers", None)
    if headers is None and isinstance(error, httpx.HTTPStatusError):
        headers = error.response.headers
    if not headers:
        return None

    value = headers.get("retry-after")
    if not value:
        return None
    value = str(value).strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class RetryHandler:
    """Retries transient upstream failures a bounded number of times."""

    def __init__(
        self,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        exponential_backoff: bool = False,
        max_delay: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the retry handler.

        Args:
            max_attempts: Total attempts including the first call (at least 1)
            retry_delay: Base delay between attempts in seconds
            exponential_backoff: Double the delay after every failed attempt
            max_delay: Upper bound for any single delay in seconds
            sleep: Awaitable sleep function (injectable for tests)
        """
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = max(0.0, retry_delay)
        self.exponential_backoff = exponential_backoff
        self.max_delay = max_delay
        self._sleep = sleep

    def should_retry(self, error: BaseException) -> bool:
        """Whether ``error`` is transient.

        Uses the error category (network, timeout, rate limit, server).
        """
        if isinstance(error, asyncio.CancelledError):
            return False
        retryable = getattr(error, "retryable", None)
        if isinstance(retryable, bool):
            return retryable
        return categorize_error(error).retryable

    async def execute(
        self,
        fn: Callable[[], Awaitable[Any]],
        idempotent: bool = True,
        description: str = "upstream call",
    ) -> Any:
        """Run ``fn``, retrying transient failures when ``idempotent`` is true.

        Args:
            fn: Zero-argument coroutine function performing the call
            idempotent: False for mutating calls, which run exactly once
            description: Label used in log messages

        Returns:
            Whatever ``fn`` returns

        Raises:
            The last error once attempts are exhausted or the error is not
            transient.
        """
        attempts = self.max_attempts if idempotent else 1
        for attempt in range(1, attempts + 1):
            try:
                return await fn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt >= attempts or not self.should_retry(e):
                    if attempt > 1:
                        logger.error(f"{description} failed after {attempt} attempts: {e}")
                    raise

                delay = self._get_delay(attempt, e)
                logger.warning(
                    f"{description} attempt {attempt}/{attempts} failed: {e}. "
                    f"Retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        # Unreachable: the loop either returns or raises.
        raise RuntimeError(f"{description}: retry loop exited without a result")

    def _get_delay(self, attempt: int, error: Optional[BaseException] = None) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Failed attempt number (1-based)
            error: The error that triggered the retry

        Returns:
            Delay in seconds
        """
        retry_after = get_retry_after(error) if error is not None else None
        if retry_after is not None and categorize_error(error) == ErrorCategory.RATE_LIMIT:
            return min(retry_after, self.max_delay)

        if self.exponential_backoff:
            delay = self.retry_delay * (2 ** (attempt - 1))
        else:
            delay = self.retry_delay
        return min(delay, self.max_delay)
