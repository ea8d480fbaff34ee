"""Response Optimization Domain Events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ResponseTruncated:
    """Emitted when the budget enforcer had to cut a response."""
    tool_name: str
    context: str
    budget_tokens: int
    original_tokens: int
    final_tokens: int
    items_total: Optional[int] = None
    items_kept: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "ResponseTruncated",
            "tool_name": self.tool_name,
            "context": self.context,
            "budget_tokens": self.budget_tokens,
            "original_tokens": self.original_tokens,
            "final_tokens": self.final_tokens,
            "items_total": self.items_total,
            "items_kept": self.items_kept,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ResponseFiltered:
    """Emitted when pre-projection filters removed items."""
    tool_name: str
    items_before: int
    items_after: int
    filters: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "ResponseFiltered",
            "tool_name": self.tool_name,
            "items_before": self.items_before,
            "items_after": self.items_after,
            "filters": self.filters,
            "timestamp": self.timestamp.isoformat(),
        }
