"""Tests for RetryHandler."""
import asyncio

import pytest

from supamcp.adapters.management_api import ManagementApiError
from supamcp.lib.errors import ErrorCategory, ToolExecutionError
from supamcp.lib.retry import RetryHandler, get_retry_after
from tests.unit.helpers.fake_platform import StatusError


# ── Helpers ──────────────────────────────────────────────────────────


class Flaky:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _handler(**kwargs):
    delays = []

    async def sleep(delay):
        delays.append(delay)

    kwargs.setdefault("retry_delay", 0.5)
    return RetryHandler(sleep=sleep, **kwargs), delays


class TestRetryHandler:
    __test__ = True

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self):
        handler, delays = _handler(max_attempts=3)
        fn = Flaky(StatusError(503), StatusError(502))
        assert await handler.execute(fn) == "ok"
        assert fn.calls == 3
        assert delays == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_last_error(self):
        handler, _ = _handler(max_attempts=2)
        last = StatusError(503, "still down")
        fn = Flaky(StatusError(503), last)
        with pytest.raises(StatusError) as exc_info:
            await handler.execute(fn)
        assert exc_info.value is last
        assert fn.calls == 2

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self):
        handler, delays = _handler()
        fn = Flaky(StatusError(404))
        with pytest.raises(StatusError):
            await handler.execute(fn)
        assert fn.calls == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_mutating_calls_run_once(self):
        handler, _ = _handler(max_attempts=5)
        fn = Flaky(StatusError(503))
        with pytest.raises(StatusError):
            await handler.execute(fn, idempotent=False)
        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        handler, _ = _handler()
        fn = Flaky(asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await handler.execute(fn)
        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_retry_after_is_honored_for_rate_limits(self):
        handler, delays = _handler(max_delay=10.0)
        fn = Flaky(ManagementApiError(429, "Too many requests", headers={"retry-after": "3"}))
        await handler.execute(fn)
        assert delays == [3.0]

    @pytest.mark.asyncio
    async def test_retry_after_capped_by_max_delay(self):
        handler, delays = _handler(max_delay=2.0)
        fn = Flaky(ManagementApiError(429, "Too many requests", headers={"retry-after": "60"}))
        await handler.execute(fn)
        assert delays == [2.0]

    @pytest.mark.asyncio
    async def test_exponential_backoff(self):
        handler, delays = _handler(max_attempts=4, retry_delay=1.0, exponential_backoff=True,
                                   max_delay=3.0)
        fn = Flaky(StatusError(500), StatusError(500), StatusError(500))
        await handler.execute(fn)
        assert delays == [1.0, 2.0, 3.0]

    def test_should_retry_prefers_explicit_flag(self):
        handler, _ = _handler()
        assert handler.should_retry(ToolExecutionError("x", ErrorCategory.SERVER))
        assert not handler.should_retry(
            ToolExecutionError("x", ErrorCategory.SERVER, retryable=False)
        )
        assert not handler.should_retry(asyncio.CancelledError())

    def test_attempts_at_least_one(self):
        handler, _ = _handler(max_attempts=0)
        assert handler.max_attempts == 1


class TestRetryAfter:
    __test__ = True

    def test_seconds(self):
        assert get_retry_after(ManagementApiError(429, "x", headers={"retry-after": "7"})) == 7.0

    def test_http_date_in_the_past(self):
        error = ManagementApiError(
            429, "x", headers={"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"},
        )
        assert get_retry_after(error) == 0.0

    def test_missing_or_invalid(self):
        assert get_retry_after(RuntimeError("x")) is None
        assert get_retry_after(ManagementApiError(429, "x", headers={"retry-after": "soon"})) is None
