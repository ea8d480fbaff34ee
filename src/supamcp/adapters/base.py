"""Upstream collaborator port.

Tool handlers talk to the management platform only through this protocol,
which keeps the projection pipeline independent of transport details and
lets tests substitute an in-memory fake.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

SYSTEM_SCHEMAS = (
    "information_schema",
    "pg_catalog",
    "pg_toast",
    "_timescaledb_internal",
)

LOG_SERVICES = (
    "api",
    "branch-action",
    "postgres",
    "edge-function",
    "auth",
    "storage",
    "realtime",
)


@runtime_checkable
class ManagementPlatform(Protocol):
    """Operations the gateway needs from the management API.

    Every method returns plain JSON-like data. Failures raise an exception
    carrying an HTTP ``status`` where one exists.
    """

    async def execute_sql(
        self, project_id: str, query: str, read_only: bool = False,
    ) -> List[Dict[str, Any]]:
        """Run a SQL statement and return its rows."""
        ...

    async def list_tables(
        self, project_id: str, schemas: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        """Table descriptors with nested columns, primary keys and relationships."""
        ...

    async def list_extensions(self, project_id: str) -> List[Dict[str, Any]]:
        ...

    async def list_migrations(self, project_id: str) -> List[Dict[str, Any]]:
        ...

    async def apply_migration(self, project_id: str, name: str, query: str) -> Any:
        ...

    async def get_logs(
        self,
        project_id: str,
        service: str,
        iso_timestamp_start: Optional[str] = None,
        iso_timestamp_end: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Recent log records for one service."""
        ...

    async def get_security_advisors(self, project_id: str) -> List[Dict[str, Any]]:
        ...

    async def get_performance_advisors(self, project_id: str) -> List[Dict[str, Any]]:
        ...

    async def generate_typescript_types(self, project_id: str) -> Dict[str, Any]:
        """Generated type definitions as ``{"types": "<source text>"}``."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
