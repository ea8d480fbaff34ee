"""Shared Kernel - Types shared across bounded contexts."""

from supamcp.domains.shared.kernel import (
    AdvisorsFormat,
    AdvisorType,
    CoercedStringList,
    ExtensionsFormat,
    JsonObject,
    JsonValue,
    LogLevelFilter,
    LogsFormat,
    LogService,
    OptionalCoercedStringList,
    SeverityFilter,
    SqlResponseSize,
    TablesFormat,
    TimeWindow,
    TypesSize,
    is_empty,
    serialize,
)

__all__ = [
    "AdvisorsFormat",
    "AdvisorType",
    "CoercedStringList",
    "ExtensionsFormat",
    "JsonObject",
    "JsonValue",
    "LogLevelFilter",
    "LogsFormat",
    "LogService",
    "OptionalCoercedStringList",
    "SeverityFilter",
    "SqlResponseSize",
    "TablesFormat",
    "TimeWindow",
    "TypesSize",
    "is_empty",
    "serialize",
]
