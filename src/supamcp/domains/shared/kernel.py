"""Shared Kernel - value types shared across bounded contexts.

The response optimization, query governor and response cache contexts all
treat upstream payloads as opaque JSON-like values and agree on a single
canonical serialization. The type-constrained tool parameters used by the
server live here as well.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BeforeValidator

JsonScalar = Union[str, int, float, bool, None]
JsonValue = Union[JsonScalar, List[Any], Dict[str, Any]]
JsonObject = Dict[str, Any]


def serialize(value: Any) -> str:
    """Serialize a value to its canonical string form.

    Pretty-printed JSON with two-space indentation. Objects that are not
    JSON-native (datetimes, decimals, UUIDs) are rendered with ``str``.

    Raises:
        ValueError: If the value contains a reference cycle.
    """
    return json.dumps(value, indent=2, default=str, ensure_ascii=False)


def is_empty(value: Any) -> bool:
    """Check if a value is considered empty (None or a zero-length container)."""
    if value is None:
        return True
    if isinstance(value, (str, list, dict, tuple, set)) and len(value) == 0:
        return True
    return False


# ============================================================
# Type-Constrained Tool Parameters
# ============================================================
#
# Literal type aliases with BeforeValidator for case-insensitive
# normalization. Produces flat {"enum": [...]} in JSON Schema
# while accepting wrong-case input at runtime.
# ============================================================


def _normalize_str(v: Any) -> Any:
    """Normalize string input: strip whitespace, lowercase."""
    return v.strip().lower() if isinstance(v, str) else v


# ── Response tiers ───────────────────────────────────────────

TablesFormat = Annotated[
    Literal["names_only", "summary", "detailed"],
    BeforeValidator(_normalize_str),
]

ExtensionsFormat = Annotated[
    Literal["summary", "detailed"],
    BeforeValidator(_normalize_str),
]

SqlResponseSize = Annotated[
    Literal["small", "medium", "large"],
    BeforeValidator(_normalize_str),
]

LogsFormat = Annotated[
    Literal["errors_only", "compact", "detailed"],
    BeforeValidator(_normalize_str),
]

AdvisorsFormat = Annotated[
    Literal["critical_only", "summary", "detailed"],
    BeforeValidator(_normalize_str),
]

TypesSize = Annotated[
    Literal["small", "medium", "large"],
    BeforeValidator(_normalize_str),
]

# ── Filters ──────────────────────────────────────────────────

LogService = Annotated[
    Literal[
        "api", "branch-action", "postgres", "edge-function",
        "auth", "storage", "realtime",
    ],
    BeforeValidator(_normalize_str),
]

TimeWindow = Annotated[
    Literal["1min", "5min", "15min", "1hour"],
    BeforeValidator(_normalize_str),
]

LogLevelFilter = Annotated[
    Literal["all", "debug", "info", "warn", "error"],
    BeforeValidator(_normalize_str),
]

AdvisorType = Annotated[
    Literal["security", "performance"],
    BeforeValidator(_normalize_str),
]

SeverityFilter = Annotated[
    Literal["all", "critical", "high", "medium", "low"],
    BeforeValidator(_normalize_str),
]


def _coerce_string_to_list(v: Any) -> Any:
    """Coerce stringified JSON arrays and comma-separated strings to lists.

    Handles three LLM output patterns:
    1. JSON array string:  '["public", "auth"]' -> ["public", "auth"]
    2. Comma-separated:    'public,auth'        -> ["public", "auth"]
    3. Single value:       'public'             -> ["public"]

    Non-string inputs (list, None, int, etc.) pass through unchanged.
    """
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        v_stripped = v.strip()
        if v_stripped.startswith("["):
            try:
                parsed = json.loads(v_stripped)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
        if "," in v_stripped:
            return [item.strip() for item in v_stripped.split(",") if item.strip()]
        if v_stripped:
            return [v_stripped]
    return v


CoercedStringList = Annotated[List[str], BeforeValidator(_coerce_string_to_list)]
OptionalCoercedStringList = Annotated[
    Optional[List[str]], BeforeValidator(_coerce_string_to_list)
]
