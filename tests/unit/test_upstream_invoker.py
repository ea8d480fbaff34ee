"""Tests for UpstreamInvoker: caching, retries and error wrapping."""
import pytest

from supamcp.components.invoker import UpstreamInvoker
from supamcp.container import ServiceContainer
from supamcp.lib.errors import ErrorCategory, ToolExecutionError
from supamcp.models.config_models import ServerConfig
from tests.unit.helpers.fake_platform import StatusError


# ── Helpers ──────────────────────────────────────────────────────────


def _read_tables(invoker, platform, ttl=60.0):
    return invoker.read(
        "list_tables",
        {"project_id": "p"},
        lambda: platform.list_tables("p"),
        ttl=ttl,
        project_id="p",
    )


class TestResolveProject:
    __test__ = True

    def test_explicit_wins(self, container):
        assert UpstreamInvoker(container).resolve_project("other", "t") == "other"

    def test_falls_back_to_config(self, container):
        assert UpstreamInvoker(container).resolve_project(None, "t") == "test-project"
        assert UpstreamInvoker(container).resolve_project("  ", "t") == "test-project"

    def test_missing_project(self):
        invoker = UpstreamInvoker(ServiceContainer(config=ServerConfig()))
        with pytest.raises(ToolExecutionError) as exc_info:
            invoker.resolve_project(None, "list_tables")
        assert exc_info.value.category == ErrorCategory.VALIDATION
        assert "project_id is required" in exc_info.value.message


class TestRead:
    __test__ = True

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, container, platform):
        invoker = UpstreamInvoker(container)
        first = await _read_tables(invoker, platform)
        second = await _read_tables(invoker, platform)
        assert first == second
        assert platform.count("list_tables") == 1

    @pytest.mark.asyncio
    async def test_refetched_after_ttl(self, container, platform, clock):
        invoker = UpstreamInvoker(container)
        await _read_tables(invoker, platform, ttl=30.0)
        clock.advance(31)
        await _read_tables(invoker, platform, ttl=30.0)
        assert platform.count("list_tables") == 2

    @pytest.mark.asyncio
    async def test_no_ttl_bypasses_cache(self, container, platform):
        invoker = UpstreamInvoker(container)
        await _read_tables(invoker, platform, ttl=None)
        await _read_tables(invoker, platform, ttl=None)
        assert platform.count("list_tables") == 2
        assert container.cache.size() == 0

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, container, platform):
        platform.fail_with("list_tables", StatusError(503))
        tables = await _read_tables(UpstreamInvoker(container), platform)
        assert len(tables) == 4
        assert platform.count("list_tables") == 2

    @pytest.mark.asyncio
    async def test_failure_is_wrapped_and_not_cached(self, container, platform):
        cause = StatusError(404, "Project not found")
        platform.fail_with("list_tables", cause)
        invoker = UpstreamInvoker(container)
        with pytest.raises(ToolExecutionError) as exc_info:
            await _read_tables(invoker, platform)
        error = exc_info.value
        assert error.category == ErrorCategory.NOT_FOUND
        assert error.context.tool == "list_tables"
        assert error.context.project_id == "p"
        assert error.__cause__ is cause
        assert container.cache.size() == 0
        assert len(await _read_tables(invoker, platform)) == 4

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, container, platform):
        platform.fail_with("list_tables", StatusError(503), StatusError(503), StatusError(503))
        with pytest.raises(ToolExecutionError) as exc_info:
            await _read_tables(UpstreamInvoker(container), platform)
        assert exc_info.value.category == ErrorCategory.SERVER
        assert platform.count("list_tables") == 3

    @pytest.mark.asyncio
    async def test_works_without_cache(self, platform):
        container = ServiceContainer(
            config=ServerConfig(project_ref="p", cache_enabled=False), _platform=platform,
        )
        invoker = UpstreamInvoker(container)
        await _read_tables(invoker, platform)
        await _read_tables(invoker, platform)
        assert platform.count("list_tables") == 2


class TestMutate:
    __test__ = True

    @pytest.mark.asyncio
    async def test_runs_once_on_failure(self, container, platform):
        platform.fail_with("apply_migration", StatusError(503))
        invoker = UpstreamInvoker(container)
        with pytest.raises(ToolExecutionError) as exc_info:
            await invoker.mutate(
                "apply_migration",
                {"project_id": "p", "name": "m", "query": "q"},
                lambda: platform.apply_migration("p", "m", "q"),
                project_id="p",
            )
        assert exc_info.value.retryable is True
        assert platform.count("apply_migration") == 1

    @pytest.mark.asyncio
    async def test_success_invalidates_affected_reads(self, container, platform):
        invoker = UpstreamInvoker(container)
        await _read_tables(invoker, platform)
        await invoker.mutate(
            "apply_migration", {}, lambda: platform.apply_migration("p", "m", "q"),
        )
        await _read_tables(invoker, platform)
        assert platform.count("list_tables") == 2

    @pytest.mark.asyncio
    async def test_invalidate_false_keeps_cache(self, container, platform):
        invoker = UpstreamInvoker(container)
        await _read_tables(invoker, platform)
        await invoker.mutate(
            "execute_sql", {}, lambda: platform.execute_sql("p", "update t set a = 1"),
            invalidate=False,
        )
        await _read_tables(invoker, platform)
        assert platform.count("list_tables") == 1
