"""Field policies keyed by entity kind and response format.

Every reshaping rule lives in the ``FIELD_POLICIES`` table below instead of
being repeated at each tool call site. The ``FieldProjector`` service is the
only consumer.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from .value_objects import EntityKind, ResponseFormat

DESCRIPTION_EXCERPT = 150
MESSAGE_EXCERPT = 300
ELLIPSIS = "..."

# Canonical order of the collapsed column flags.
COLUMN_OPTION_FLAGS: Tuple[Tuple[str, str], ...] = (
    ("is_identity", "identity"),
    ("is_generated", "generated"),
    ("is_nullable", "nullable"),
    ("is_updatable", "updatable"),
    ("is_unique", "unique"),
)


@dataclass(frozen=True)
class FieldPolicy:
    """How one entity kind is reshaped at one response format.

    Renames are applied first, then derived fields (options, counts,
    presence flags, excerpts) are computed, then the allow/deny lists.
    ``keep`` lists output names and also fixes their order.
    """
    keep: Optional[Tuple[str, ...]] = None
    drop: FrozenSet[str] = frozenset()
    renames: Tuple[Tuple[str, str], ...] = ()
    option_flags: Tuple[Tuple[str, str], ...] = ()
    options_field: str = "options"
    counts: Tuple[Tuple[str, str], ...] = ()
    presence: Tuple[Tuple[str, str], ...] = ()
    excerpts: Tuple[Tuple[str, str, int], ...] = ()
    nested: Tuple[Tuple[str, EntityKind], ...] = ()
    omit_empty: bool = True

    @property
    def consumed_flags(self) -> FrozenSet[str]:
        return frozenset(source for source, _ in self.option_flags)


# Low-signal table fields (id, bytes, replica_identity, dead_rows_estimate,
# size) survive only at DETAILED: the coarser table policies are allow-lists.
_TABLE_RENAMES = (("live_rows_estimate", "rows"),)

_LOG_RENAMES = (("msg", "message"), ("event_message", "message"))
_LOG_COMPACT = FieldPolicy(
    keep=("timestamp", "level", "message", "service"),
    renames=_LOG_RENAMES,
    excerpts=(("message", "message", MESSAGE_EXCERPT),),
)

_ADVISOR_RENAMES = (("level", "severity"), ("remediation", "remediation_url"))
_ADVISOR_SUMMARY = FieldPolicy(
    keep=("title", "severity", "category", "summary", "remediation_url"),
    renames=_ADVISOR_RENAMES,
    excerpts=(("description", "summary", DESCRIPTION_EXCERPT),),
)

FIELD_POLICIES: Dict[Tuple[EntityKind, ResponseFormat], FieldPolicy] = {
    # Tables
    (EntityKind.TABLE, ResponseFormat.NAMES_ONLY): FieldPolicy(
        keep=("schema", "name", "rows"),
        renames=_TABLE_RENAMES,
    ),
    (EntityKind.TABLE, ResponseFormat.SUMMARY): FieldPolicy(
        keep=(
            "schema", "name", "rows", "rls_enabled", "column_count",
            "has_primary_key", "relationship_count", "comment",
        ),
        renames=_TABLE_RENAMES,
        counts=(("columns", "column_count"), ("relationships", "relationship_count")),
        presence=(("primary_keys", "has_primary_key"),),
        excerpts=(("comment", "comment", DESCRIPTION_EXCERPT),),
    ),
    (EntityKind.TABLE, ResponseFormat.DETAILED): FieldPolicy(
        renames=_TABLE_RENAMES + (("relationships", "foreign_key_constraints"),),
        nested=(
            ("columns", EntityKind.COLUMN),
            ("foreign_key_constraints", EntityKind.RELATIONSHIP),
            ("primary_keys", EntityKind.PRIMARY_KEY),
        ),
    ),
    (EntityKind.COLUMN, ResponseFormat.DETAILED): FieldPolicy(
        drop=frozenset({"table", "table_id", "schema", "ordinal_position"}),
        option_flags=COLUMN_OPTION_FLAGS,
    ),
    (EntityKind.RELATIONSHIP, ResponseFormat.DETAILED): FieldPolicy(),
    (EntityKind.PRIMARY_KEY, ResponseFormat.DETAILED): FieldPolicy(
        drop=frozenset({"schema", "table_name", "table_id"}),
    ),
    # Extensions
    (EntityKind.EXTENSION, ResponseFormat.SUMMARY): FieldPolicy(
        keep=("name", "schema", "installed_version", "default_version"),
    ),
    (EntityKind.EXTENSION, ResponseFormat.DETAILED): FieldPolicy(),
    # Migrations
    (EntityKind.MIGRATION, ResponseFormat.DETAILED): FieldPolicy(
        drop=frozenset({"statements"}),
    ),
    # Logs
    (EntityKind.LOG_ENTRY, ResponseFormat.ERRORS_ONLY): _LOG_COMPACT,
    (EntityKind.LOG_ENTRY, ResponseFormat.COMPACT): _LOG_COMPACT,
    (EntityKind.LOG_ENTRY, ResponseFormat.DETAILED): FieldPolicy(renames=_LOG_RENAMES),
    # Advisors
    (EntityKind.ADVISOR, ResponseFormat.CRITICAL_ONLY): _ADVISOR_SUMMARY,
    (EntityKind.ADVISOR, ResponseFormat.SUMMARY): _ADVISOR_SUMMARY,
    (EntityKind.ADVISOR, ResponseFormat.DETAILED): FieldPolicy(
        renames=_ADVISOR_RENAMES,
        drop=frozenset({"cache_key"}),
    ),
    # Generated types and raw SQL rows
    (EntityKind.TYPES_BUNDLE, ResponseFormat.DETAILED): FieldPolicy(),
    (EntityKind.SQL_ROW, ResponseFormat.DETAILED): FieldPolicy(omit_empty=False),
}


def get_field_policy(kind: EntityKind, fmt: ResponseFormat) -> FieldPolicy:
    """Look up the policy for ``kind`` at ``fmt``, falling back to DETAILED."""
    policy = FIELD_POLICIES.get((kind, fmt))
    if policy is None:
        policy = FIELD_POLICIES.get((kind, ResponseFormat.DETAILED), FieldPolicy())
    return policy
