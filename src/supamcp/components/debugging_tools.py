"""Debugging tool handlers: service logs and advisor findings.

Upstream records come in several shapes (auth logs carry ``level``,
postgres logs ``error_severity``, API logs only a status code; advisor lints
use ``level`` instead of ``severity``). They are normalized here before the
shared filter and projection pipeline runs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, List, Optional

from supamcp.components.invoker import UpstreamInvoker
from supamcp.domains.response_optimization import EntityKind, FilterSpec, ResponseFormat

if TYPE_CHECKING:
    from supamcp.container import ServiceContainer

logger = logging.getLogger(__name__)

TIME_WINDOWS: Dict[str, timedelta] = {
    "1min": timedelta(minutes=1),
    "5min": timedelta(minutes=5),
    "15min": timedelta(minutes=15),
    "1hour": timedelta(hours=1),
}
DEFAULT_TIME_WINDOW = "1min"
# Workflow logs are sparse; a shorter window rarely contains anything.
MIN_BRANCH_ACTION_WINDOW = timedelta(minutes=5)
DEFAULT_MAX_ENTRIES = 50

LOG_LEVEL_RANKS: Dict[str, int] = {"debug": 0, "info": 1, "warn": 2, "error": 3, "fatal": 4}
_LOG_LEVEL_ALIASES = {
    "warning": "warn",
    "notice": "info",
    "log": "info",
    "trace": "debug",
    "panic": "fatal",
    "critical": "fatal",
}

SEVERITY_RANKS: Dict[str, int] = {"info": 0, "low": 1, "medium": 2, "high": 3, "critical": 4}
_LINT_LEVELS = {"error": "critical", "warn": "medium", "warning": "medium", "info": "low"}
CRITICAL_ONLY_RANK = SEVERITY_RANKS["high"]


def normalize_log_level(entry: Dict[str, Any]) -> str:
    """Derive a lowercase level from ``level``, ``error_severity`` or ``status_code``."""
    raw = entry.get("level") or entry.get("error_severity")
    if isinstance(raw, str) and raw.strip():
        level = raw.strip().lower()
        level = _LOG_LEVEL_ALIASES.get(level, level)
        if level in LOG_LEVEL_RANKS:
            return level
    status = entry.get("status_code")
    if isinstance(status, int) and not isinstance(status, bool):
        if status >= 500:
            return "error"
        if status >= 400:
            return "warn"
    return "info"


def normalize_severity(entry: Dict[str, Any]) -> str:
    """Map lint ``level`` values (ERROR/WARN/INFO) onto the severity scale."""
    raw = entry.get("severity")
    if isinstance(raw, str) and raw.strip().lower() in SEVERITY_RANKS:
        return raw.strip().lower()
    level = entry.get("level")
    if isinstance(level, str):
        return _LINT_LEVELS.get(level.strip().lower(), "info")
    return "info"


def _at_least(ranks: Dict[str, int], threshold: int) -> FrozenSet[str]:
    return frozenset(name for name, rank in ranks.items() if rank >= threshold)


class DebuggingTools:
    """Handlers for ``get_logs`` and ``get_advisors``."""

    def __init__(
        self,
        container: "ServiceContainer",
        invoker: Optional[UpstreamInvoker] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.container = container
        self.invoker = invoker or UpstreamInvoker(container)
        self._clock = clock

    # --------------------------------------------------------------- get_logs

    async def get_logs(
        self,
        service: str,
        project_id: Optional[str] = None,
        time_window: str = DEFAULT_TIME_WINDOW,
        log_level_filter: str = "all",
        search_pattern: Optional[str] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        response_format: Optional[str] = None,
    ) -> str:
        """Fetch recent logs for one service, then filter, project and bound them."""
        tool = "get_logs"
        project = self.invoker.resolve_project(project_id, tool)
        tier = self.container.profiles.require(tool).tier(response_format)
        if time_window not in TIME_WINDOWS:
            raise ValueError(
                f"Unknown time_window '{time_window}'. Valid: {', '.join(TIME_WINDOWS)}"
            )
        if log_level_filter != "all" and log_level_filter not in LOG_LEVEL_RANKS:
            raise ValueError(
                f"Unknown log_level_filter '{log_level_filter}'. "
                f"Valid: all, {', '.join(LOG_LEVEL_RANKS)}"
            )

        window = TIME_WINDOWS[time_window]
        if service == "branch-action":
            window = max(window, MIN_BRANCH_ACTION_WINDOW)
        end = self._clock()
        start = end - window

        entries = await self.invoker.read(
            tool,
            {"project_id": project, "service": service, "time_window": time_window},
            lambda: self.container.platform.get_logs(
                project, service, start.isoformat(), end.isoformat(),
            ),
            project_id=project,
        )

        normalized: List[Any] = []
        for entry in entries or []:
            if isinstance(entry, dict):
                entry = dict(entry)
                entry["level"] = normalize_log_level(entry)
                entry.setdefault("service", service)
            normalized.append(entry)

        threshold = 0
        if log_level_filter != "all":
            threshold = LOG_LEVEL_RANKS[log_level_filter]
        if tier.projection == ResponseFormat.ERRORS_ONLY:
            threshold = max(threshold, LOG_LEVEL_RANKS["warn"])

        spec = FilterSpec(
            value_field="level" if threshold else None,
            allowed_values=_at_least(LOG_LEVEL_RANKS, threshold) if threshold else None,
            search_text=search_pattern or None,
            max_items=max(1, int(max_entries)),
        )

        parts = [f"{service} service logs ({time_window} window)"]
        if log_level_filter != "all":
            parts.append(f"({log_level_filter}+ level)")
        if search_pattern:
            parts.append(f"(search: {search_pattern})")
        parts.append(f"(format: {tier.name})")

        result = self.container.processor.process(
            normalized, EntityKind.LOG_ENTRY, tier, " ".join(parts),
            filter_spec=spec, tool_name=tool,
        )
        return result.text

    # ----------------------------------------------------------- get_advisors

    async def get_advisors(
        self,
        type: str,
        project_id: Optional[str] = None,
        severity_filter: str = "all",
        response_format: Optional[str] = None,
    ) -> str:
        """Fetch security or performance advisor findings, filtered by severity."""
        tool = "get_advisors"
        project = self.invoker.resolve_project(project_id, tool)
        tier = self.container.profiles.require(tool).tier(response_format)
        platform = self.container.platform
        if type == "security":
            fetch = platform.get_security_advisors
        elif type == "performance":
            fetch = platform.get_performance_advisors
        else:
            raise ValueError(f"Unknown advisor type '{type}'. Valid: security, performance")
        if severity_filter != "all" and severity_filter not in SEVERITY_RANKS:
            raise ValueError(
                f"Unknown severity_filter '{severity_filter}'. "
                f"Valid: all, {', '.join(SEVERITY_RANKS)}"
            )

        advisors = await self.invoker.read(
            tool,
            {"project_id": project, "type": type},
            lambda: fetch(project),
            project_id=project,
        )

        normalized: List[Any] = []
        for advisor in advisors or []:
            if isinstance(advisor, dict):
                advisor = dict(advisor)
                advisor["severity"] = normalize_severity(advisor)
                advisor.pop("level", None)
                if not advisor.get("category"):
                    categories = advisor.get("categories")
                    if isinstance(categories, list) and categories:
                        advisor["category"] = str(categories[0]).lower()
                    else:
                        advisor["category"] = type
            normalized.append(advisor)

        threshold = 0
        if severity_filter != "all":
            threshold = SEVERITY_RANKS[severity_filter]
        if tier.projection == ResponseFormat.CRITICAL_ONLY:
            threshold = max(threshold, CRITICAL_ONLY_RANK)

        spec = None
        parts = [f"{type} advisors"]
        if threshold:
            spec = FilterSpec(
                value_field="severity",
                allowed_values=_at_least(SEVERITY_RANKS, threshold),
            )
            label = next(name for name, rank in SEVERITY_RANKS.items() if rank == threshold)
            parts.append(f"({label}+ severity)")
        parts.append(f"(format: {tier.name})")

        result = self.container.processor.process(
            normalized, EntityKind.ADVISOR, tier, " ".join(parts),
            filter_spec=spec, tool_name=tool,
        )
        return result.text
