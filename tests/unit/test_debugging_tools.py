"""Tests for the logs and advisors tool handlers."""
import json
from datetime import datetime, timezone

import pytest

from supamcp.components import DebuggingTools
from supamcp.components.debugging_tools import normalize_log_level, normalize_severity


# ── Helpers ──────────────────────────────────────────────────────────


NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _split(text):
    header, _, payload = text.partition("\n\n")
    return header, json.loads(payload)


@pytest.fixture
def tools(container):
    return DebuggingTools(container, clock=lambda: NOW)


# ── Normalization ────────────────────────────────────────────────────


class TestNormalization:
    __test__ = True

    @pytest.mark.parametrize("entry,level", [
        ({"level": "ERROR"}, "error"),
        ({"level": "warning"}, "warn"),
        ({"level": "notice"}, "info"),
        ({"error_severity": "LOG"}, "info"),
        ({"error_severity": "FATAL"}, "fatal"),
        ({"error_severity": "PANIC"}, "fatal"),
        ({"status_code": 502}, "error"),
        ({"status_code": 404}, "warn"),
        ({"status_code": 200}, "info"),
        ({"level": "bogus"}, "info"),
        ({}, "info"),
    ])
    def test_log_levels(self, entry, level):
        assert normalize_log_level(entry) == level

    @pytest.mark.parametrize("entry,severity", [
        ({"severity": "High"}, "high"),
        ({"level": "ERROR"}, "critical"),
        ({"level": "WARN"}, "medium"),
        ({"level": "INFO"}, "low"),
        ({"level": "other"}, "info"),
        ({}, "info"),
    ])
    def test_severities(self, entry, severity):
        assert normalize_severity(entry) == severity


# ── get_logs ─────────────────────────────────────────────────────────


class TestGetLogs:
    __test__ = True

    @pytest.mark.asyncio
    async def test_compact_default(self, tools):
        header, entries = _split(await tools.get_logs("api"))
        assert header == "api service logs (1min window) (format: compact)"
        assert len(entries) == 5
        for entry in entries:
            assert set(entry) <= {"timestamp", "level", "message", "service"}
        assert entries[0]["message"] == "User login successful"

    @pytest.mark.asyncio
    async def test_time_window_passed_upstream(self, tools, platform):
        await tools.get_logs("auth", time_window="15min")
        assert platform.last_args("get_logs") == (
            "test-project", "auth", "2024-01-01T11:45:00+00:00", "2024-01-01T12:00:00+00:00",
        )

    @pytest.mark.asyncio
    async def test_branch_action_window_is_at_least_five_minutes(self, tools, platform):
        await tools.get_logs("branch-action")
        assert platform.last_args("get_logs")[2] == "2024-01-01T11:55:00+00:00"

    @pytest.mark.asyncio
    async def test_errors_only(self, tools):
        header, entries = _split(await tools.get_logs("api", response_format="errors_only"))
        assert header == "api service logs (1min window) (format: errors_only)"
        assert [e["level"] for e in entries] == ["error", "warn", "error"]

    @pytest.mark.asyncio
    async def test_level_filter(self, tools):
        header, entries = _split(await tools.get_logs("api", log_level_filter="error"))
        assert "(error+ level)" in header
        assert [e["message"] for e in entries] == [
            "Database connection failed",
            "Function execution failed",
        ]

    @pytest.mark.asyncio
    async def test_search_and_max_entries(self, tools):
        header, entries = _split(await tools.get_logs("api", search_pattern="FAILED"))
        assert header.endswith("(search: FAILED) (format: compact)")
        assert len(entries) == 2
        _, entries = _split(await tools.get_logs("api", max_entries=2))
        assert len(entries) == 2

    @pytest.mark.asyncio
    async def test_postgres_severity_and_missing_service(self, tools, platform):
        platform.logs = [
            {"timestamp": 1, "event_message": "deadlock detected", "error_severity": "ERROR"},
            {"timestamp": 2, "event_message": "checkpoint starting", "error_severity": "LOG"},
        ]
        _, entries = _split(await tools.get_logs("postgres", response_format="errors_only"))
        assert entries == [{
            "timestamp": 1,
            "level": "error",
            "message": "deadlock detected",
            "service": "postgres",
        }]

    @pytest.mark.asyncio
    async def test_detailed_keeps_fields(self, tools):
        _, entries = _split(await tools.get_logs("api", response_format="detailed"))
        assert entries[1]["error"] == "Connection timeout"

    @pytest.mark.asyncio
    async def test_not_cached(self, tools, platform):
        await tools.get_logs("api")
        await tools.get_logs("api")
        assert platform.count("get_logs") == 2

    @pytest.mark.asyncio
    async def test_invalid_options(self, tools):
        with pytest.raises(ValueError, match="time_window"):
            await tools.get_logs("api", time_window="1day")
        with pytest.raises(ValueError, match="log_level_filter"):
            await tools.get_logs("api", log_level_filter="loud")

    @pytest.mark.asyncio
    async def test_large_log_volume_is_bounded(self, tools, platform):
        platform.logs = [
            {"timestamp": i, "level": "error", "msg": "x" * 400, "service": "api"}
            for i in range(100)
        ]
        text = await tools.get_logs("api", max_entries=100, response_format="errors_only")
        assert len(text) <= 5000 * 4
        assert "Warning: showing" in text


# ── get_advisors ─────────────────────────────────────────────────────


class TestGetAdvisors:
    __test__ = True

    @pytest.mark.asyncio
    async def test_security_summary(self, tools):
        header, advisors = _split(await tools.get_advisors("security"))
        assert header == "security advisors (format: summary)"
        assert [a["severity"] for a in advisors] == ["critical", "medium"]
        assert advisors[0]["category"] == "security"
        assert advisors[0]["remediation_url"].endswith("lint=0013")
        assert advisors[0]["summary"].endswith("...")
        assert "name" not in advisors[0]

    @pytest.mark.asyncio
    async def test_critical_only(self, tools):
        header, advisors = _split(
            await tools.get_advisors("security", response_format="critical_only")
        )
        assert header == "security advisors (high+ severity) (format: critical_only)"
        assert [a["title"] for a in advisors] == ["RLS Disabled in Public"]

    @pytest.mark.asyncio
    async def test_severity_filter(self, tools):
        header, advisors = _split(
            await tools.get_advisors("performance", severity_filter="medium")
        )
        assert header == "performance advisors (medium+ severity) (format: summary)"
        assert [a["title"] for a in advisors] == ["Missing Database Index"]

    @pytest.mark.asyncio
    async def test_stricter_of_filter_and_format(self, tools):
        header, advisors = _split(await tools.get_advisors(
            "security", severity_filter="critical", response_format="critical_only",
        ))
        assert "(critical+ severity)" in header
        assert len(advisors) == 1

    @pytest.mark.asyncio
    async def test_detailed(self, tools, platform):
        _, advisors = _split(await tools.get_advisors("security", response_format="detailed"))
        assert advisors[0]["name"] == "rls_disabled_in_public"
        assert advisors[0]["severity"] == "critical"
        assert "level" not in advisors[0]
        assert "cache_key" not in advisors[0]
        assert platform.count("get_security_advisors") == 1

    @pytest.mark.asyncio
    async def test_unknown_type(self, tools):
        with pytest.raises(ValueError, match="advisor type"):
            await tools.get_advisors("cost")
