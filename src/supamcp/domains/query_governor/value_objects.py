"""Query Governor Value Objects."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple

DEFAULT_AUTO_LIMIT = 25

SIZE_RISK_WARNING = "Query may return large result set. Auto-applying LIMIT {limit}."
MODIFIED_WARNING = "Original query modified. Use disable_auto_limit=true to override."


class RiskFlag(Enum):
    """Lexical signals that a SELECT may return a large result set."""
    SELECT_STAR = "select_star"
    JOIN = "join"
    NO_WHERE = "no_where"


@dataclass(frozen=True)
class GovernedQuery:
    """Outcome of governing one SQL statement.

    When ``modified`` is false, ``sql`` is the caller's input byte for byte
    and ``warnings`` is empty.
    """
    sql: str
    original_sql: str
    warnings: Tuple[str, ...] = ()
    risk_flags: FrozenSet[RiskFlag] = frozenset()
    is_select: bool = False
    applied_limit: Optional[int] = None

    @property
    def modified(self) -> bool:
        return self.applied_limit is not None

    @classmethod
    def unchanged(cls, sql: str, is_select: bool = False) -> GovernedQuery:
        return cls(sql=sql, original_sql=sql, is_select=is_select)
