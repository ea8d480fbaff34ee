"""In-memory ManagementPlatform used by tool and server tests."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple


class FakePlatform:
    """Records every call and serves canned data.

    ``failures`` maps a method name to a list of exceptions raised, in
    order, before the canned data is returned.
    """

    def __init__(
        self,
        tables: Optional[List[Dict[str, Any]]] = None,
        extensions: Optional[List[Dict[str, Any]]] = None,
        migrations: Optional[List[Dict[str, Any]]] = None,
        logs: Optional[List[Dict[str, Any]]] = None,
        security_advisors: Optional[List[Dict[str, Any]]] = None,
        performance_advisors: Optional[List[Dict[str, Any]]] = None,
        types: str = "",
        sql_rows: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.tables = copy.deepcopy(tables or [])
        self.extensions = copy.deepcopy(extensions or [])
        self.migrations = copy.deepcopy(migrations or [])
        self.logs = copy.deepcopy(logs or [])
        self.security_advisors = copy.deepcopy(security_advisors or [])
        self.performance_advisors = copy.deepcopy(performance_advisors or [])
        self.types = types
        self.sql_rows = copy.deepcopy(sql_rows or [])
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.failures: Dict[str, List[BaseException]] = {}
        self.closed = False

    def fail_with(self, method: str, *errors: BaseException) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def last_args(self, method: str) -> Tuple[Any, ...]:
        for name, args in reversed(self.calls):
            if name == method:
                return args
        raise AssertionError(f"{method} was never called")

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    async def execute_sql(self, project_id: str, query: str, read_only: bool = False) -> List[Dict[str, Any]]:
        self._record("execute_sql", project_id, query, read_only)
        return copy.deepcopy(self.sql_rows)

    async def list_tables(self, project_id: str, schemas: Sequence[str] = ()) -> List[Dict[str, Any]]:
        self._record("list_tables", project_id, list(schemas))
        return copy.deepcopy(self.tables)

    async def list_extensions(self, project_id: str) -> List[Dict[str, Any]]:
        self._record("list_extensions", project_id)
        return copy.deepcopy(self.extensions)

    async def list_migrations(self, project_id: str) -> List[Dict[str, Any]]:
        self._record("list_migrations", project_id)
        return copy.deepcopy(self.migrations)

    async def apply_migration(self, project_id: str, name: str, query: str) -> Any:
        self._record("apply_migration", project_id, name, query)
        self.migrations.append({"version": f"2024{len(self.migrations):010d}", "name": name})
        return None

    async def get_logs(
        self,
        project_id: str,
        service: str,
        iso_timestamp_start: Optional[str] = None,
        iso_timestamp_end: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        self._record("get_logs", project_id, service, iso_timestamp_start, iso_timestamp_end)
        return copy.deepcopy(self.logs)

    async def get_security_advisors(self, project_id: str) -> List[Dict[str, Any]]:
        self._record("get_security_advisors", project_id)
        return copy.deepcopy(self.security_advisors)

    async def get_performance_advisors(self, project_id: str) -> List[Dict[str, Any]]:
        self._record("get_performance_advisors", project_id)
        return copy.deepcopy(self.performance_advisors)

    async def generate_typescript_types(self, project_id: str) -> Dict[str, Any]:
        self._record("generate_typescript_types", project_id)
        return {"types": self.types}

    async def aclose(self) -> None:
        self.closed = True


class StatusError(Exception):
    """Upstream failure carrying an HTTP status, like ManagementApiError."""

    def __init__(self, status: int, message: str = "upstream failure") -> None:
        self.status = status
        super().__init__(message)
