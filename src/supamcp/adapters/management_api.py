"""Management REST API implementation of the platform port (httpx)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .base import LOG_SERVICES, SYSTEM_SCHEMAS

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.supabase.com"
USER_AGENT = "supamcp"

# Table catalog with nested columns, primary keys and relationships.
LIST_TABLES_SQL = """
with tables as (
  select
    c.oid::int8 as id,
    nc.nspname as schema,
    c.relname as name,
    c.relrowsecurity as rls_enabled,
    c.relforcerowsecurity as rls_forced,
    case c.relreplident
      when 'd' then 'DEFAULT' when 'i' then 'INDEX'
      when 'f' then 'FULL' else 'NOTHING'
    end as replica_identity,
    pg_total_relation_size(format('%I.%I', nc.nspname, c.relname))::int8 as bytes,
    pg_size_pretty(pg_total_relation_size(format('%I.%I', nc.nspname, c.relname))) as size,
    pg_stat_get_live_tuples(c.oid) as live_rows_estimate,
    pg_stat_get_dead_tuples(c.oid) as dead_rows_estimate,
    obj_description(c.oid) as comment
  from pg_class c
  join pg_namespace nc on nc.oid = c.relnamespace
  where c.relkind in ('r', 'p')
    and not pg_is_other_temp_schema(nc.oid)
),
columns as (
  select
    c.oid::int8 || '.' || a.attnum as id,
    c.oid::int8 as table_id,
    nc.nspname as schema,
    c.relname as "table",
    a.attname as name,
    a.attnum as ordinal_position,
    format_type(a.atttypid, a.atttypmod) as data_type,
    pg_get_expr(ad.adbin, ad.adrelid) as default_value,
    a.attidentity in ('a', 'd') as is_identity,
    a.attgenerated = 's' as is_generated,
    not a.attnotnull as is_nullable,
    c.relkind in ('r', 'p') as is_updatable,
    exists (
      select 1 from pg_index i
      where i.indrelid = c.oid and i.indisunique and i.indnatts = 1
        and i.indkey[0] = a.attnum
    ) as is_unique,
    col_description(c.oid, a.attnum) as comment
  from pg_attribute a
  join pg_class c on c.oid = a.attrelid
  join pg_namespace nc on nc.oid = c.relnamespace
  left join pg_attrdef ad on ad.adrelid = a.attrelid and ad.adnum = a.attnum
  where a.attnum > 0 and not a.attisdropped and c.relkind in ('r', 'p')
),
primary_keys as (
  select
    n.nspname as schema,
    c.relname as table_name,
    a.attname as name,
    c.oid::int8 as table_id
  from pg_index i
  join pg_class c on c.oid = i.indrelid
  join pg_namespace n on n.oid = c.relnamespace
  join pg_attribute a on a.attrelid = c.oid and a.attnum = any(i.indkey)
  where i.indisprimary
),
relationships as (
  select
    con.oid::int8 as id,
    con.conname as constraint_name,
    src_ns.nspname as source_schema,
    src.relname as source_table_name,
    src_col.attname as source_column_name,
    tgt_ns.nspname as target_table_schema,
    tgt.relname as target_table_name,
    tgt_col.attname as target_column_name,
    src.oid::int8 as source_id,
    tgt.oid::int8 as target_id
  from pg_constraint con
  join pg_class src on src.oid = con.conrelid
  join pg_namespace src_ns on src_ns.oid = src.relnamespace
  join pg_attribute src_col on src_col.attrelid = src.oid and src_col.attnum = con.conkey[1]
  join pg_class tgt on tgt.oid = con.confrelid
  join pg_namespace tgt_ns on tgt_ns.oid = tgt.relnamespace
  join pg_attribute tgt_col on tgt_col.attrelid = tgt.oid and tgt_col.attnum = con.confkey[1]
  where con.contype = 'f'
)
select
  tables.*,
  coalesce(
    (select json_agg(row_to_json(columns) order by columns.ordinal_position)
     from columns where columns.table_id = tables.id),
    '[]'
  ) as columns,
  coalesce(
    (select json_agg(row_to_json(primary_keys))
     from primary_keys where primary_keys.table_id = tables.id),
    '[]'
  ) as primary_keys,
  coalesce(
    (select json_agg(row_to_json(relationships))
     from relationships
     where relationships.source_id = tables.id or relationships.target_id = tables.id),
    '[]'
  ) as relationships
from tables
"""

LIST_EXTENSIONS_SQL = """
select
  e.name,
  n.nspname as schema,
  e.default_version,
  x.extversion as installed_version,
  e.comment
from pg_available_extensions() e(name, default_version, comment)
left join pg_extension x on e.name = x.extname
left join pg_namespace n on x.extnamespace = n.oid
order by e.name
"""

_LOG_QUERIES: Dict[str, str] = {
    "api": (
        "select id, identifier, timestamp, event_message, request.method, request.path, "
        "response.status_code from edge_logs cross join unnest(metadata) as m "
        "cross join unnest(m.request) as request cross join unnest(m.response) as response"
    ),
    "branch-action": (
        "select workflow_run, workflow_run_logs.timestamp, id, event_message from workflow_run_logs"
    ),
    "postgres": (
        "select identifier, postgres_logs.timestamp, id, event_message, parsed.error_severity "
        "from postgres_logs cross join unnest(metadata) as m cross join unnest(m.parsed) as parsed"
    ),
    "edge-function": (
        "select id, function_edge_logs.timestamp, event_message, response.status_code, "
        "request.method, m.function_id, m.execution_time_ms, m.deployment_id, m.version "
        "from function_edge_logs cross join unnest(metadata) as m "
        "cross join unnest(m.response) as response cross join unnest(m.request) as request"
    ),
    "auth": (
        "select id, auth_logs.timestamp, event_message, metadata.level, metadata.status, "
        "metadata.path, metadata.msg as msg, metadata.error from auth_logs "
        "cross join unnest(metadata) as metadata"
    ),
    "storage": "select id, storage_logs.timestamp, event_message from storage_logs",
    "realtime": "select id, realtime_logs.timestamp, event_message from realtime_logs",
}


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def list_tables_sql(schemas: Sequence[str] = ()) -> str:
    """Catalog query for tables in ``schemas`` (all non-system schemas when empty)."""
    if schemas:
        condition = f"schema in ({', '.join(_quote_literal(s) for s in schemas)})"
    else:
        condition = f"schema not in ({', '.join(_quote_literal(s) for s in SYSTEM_SCHEMAS)})"
    return f"{LIST_TABLES_SQL}where {condition}\norder by schema, name\n"


def log_query(service: str, limit: int = 100) -> str:
    """Analytics SQL returning the most recent records for ``service``."""
    if service not in _LOG_QUERIES:
        raise ValueError(f"Unknown log service '{service}'. Valid: {', '.join(LOG_SERVICES)}")
    return f"{_LOG_QUERIES[service]} order by timestamp desc limit {int(limit)}"


class ManagementApiError(Exception):
    """Non-success response from the management API.

    Attributes:
        status: HTTP status code
        message: Error message extracted from the response body
        headers: Response headers (used for ``Retry-After``)
    """

    def __init__(
        self,
        status: int,
        message: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.status = status
        self.message = message
        self.headers = headers or {}
        super().__init__(f"{message} (HTTP {status})")


class ManagementApiPlatform:
    """``ManagementPlatform`` over the management REST API."""

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if client is None:
            client = httpx.AsyncClient(
                base_url=api_url,
                timeout=timeout,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "User-Agent": USER_AGENT,
                },
            )
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = client

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        failure: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        filtered = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug(f"{method} {path}")
        response = await self._client.request(method, path, params=filtered or None, json=json)
        if response.status_code >= 400:
            raise ManagementApiError(
                response.status_code,
                f"{failure}: {self._error_message(response)}",
                headers=dict(response.headers),
            )
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(payload, dict):
            for key in ("message", "error", "msg"):
                if payload.get(key):
                    return str(payload[key])
        return response.text or response.reason_phrase

    async def execute_sql(
        self, project_id: str, query: str, read_only: bool = False,
    ) -> List[Dict[str, Any]]:
        data = await self._request(
            "POST",
            f"/v1/projects/{project_id}/database/query",
            "Failed to execute SQL query",
            json={"query": query, "read_only": read_only},
        )
        return list(data or [])

    async def list_tables(
        self, project_id: str, schemas: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        return await self.execute_sql(project_id, list_tables_sql(schemas), read_only=True)

    async def list_extensions(self, project_id: str) -> List[Dict[str, Any]]:
        return await self.execute_sql(project_id, LIST_EXTENSIONS_SQL, read_only=True)

    async def list_migrations(self, project_id: str) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/v1/projects/{project_id}/database/migrations",
            "Failed to fetch migrations",
        )
        return list(data or [])

    async def apply_migration(self, project_id: str, name: str, query: str) -> Any:
        return await self._request(
            "POST",
            f"/v1/projects/{project_id}/database/migrations",
            "Failed to apply migration",
            json={"name": name, "query": query},
        )

    async def get_logs(
        self,
        project_id: str,
        service: str,
        iso_timestamp_start: Optional[str] = None,
        iso_timestamp_end: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/v1/projects/{project_id}/analytics/endpoints/logs.all",
            "Failed to fetch logs",
            params={
                "sql": log_query(service),
                "iso_timestamp_start": iso_timestamp_start,
                "iso_timestamp_end": iso_timestamp_end,
            },
        )
        if isinstance(data, dict):
            if data.get("error"):
                raise ManagementApiError(400, f"Failed to fetch logs: {data['error']}")
            return list(data.get("result") or [])
        return list(data or [])

    async def get_security_advisors(self, project_id: str) -> List[Dict[str, Any]]:
        return await self._advisors(project_id, "security")

    async def get_performance_advisors(self, project_id: str) -> List[Dict[str, Any]]:
        return await self._advisors(project_id, "performance")

    async def _advisors(self, project_id: str, kind: str) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/v1/projects/{project_id}/advisors/{kind}",
            f"Failed to fetch {kind} advisors",
        )
        if isinstance(data, dict):
            return list(data.get("lints") or [])
        return list(data or [])

    async def generate_typescript_types(self, project_id: str) -> Dict[str, Any]:
        data = await self._request(
            "GET",
            f"/v1/projects/{project_id}/types/typescript",
            "Failed to fetch TypeScript types",
        )
        return data if isinstance(data, dict) else {"types": str(data or "")}
