"""Query Governor Domain Events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class QueryAutoLimited:
    """Emitted when a LIMIT was injected into an unbounded SELECT."""
    original_sql: str
    governed_sql: str
    limit: int
    risk_flags: Tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "QueryAutoLimited",
            "original_sql": self.original_sql,
            "governed_sql": self.governed_sql,
            "limit": self.limit,
            "risk_flags": list(self.risk_flags),
            "timestamp": self.timestamp.isoformat(),
        }
