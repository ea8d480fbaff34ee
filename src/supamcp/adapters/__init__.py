"""Upstream Platform Adapters - Anti-Corruption Layer.

Tool handlers depend on the ``ManagementPlatform`` protocol only.
``ManagementApiPlatform`` implements it over the management REST API.
"""

from .base import LOG_SERVICES, SYSTEM_SCHEMAS, ManagementPlatform
from .management_api import (
    DEFAULT_API_URL,
    ManagementApiError,
    ManagementApiPlatform,
    list_tables_sql,
    log_query,
)

__all__ = [
    "LOG_SERVICES",
    "SYSTEM_SCHEMAS",
    "ManagementPlatform",
    "DEFAULT_API_URL",
    "ManagementApiError",
    "ManagementApiPlatform",
    "list_tables_sql",
    "log_query",
]
