"""Response Cache Domain Events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass(frozen=True)
class CacheInvalidated:
    """Emitted when a mutating call evicted cached read paths."""
    pattern: str
    removed: int
    trigger: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "CacheInvalidated",
            "pattern": self.pattern,
            "removed": self.removed,
            "trigger": self.trigger,
            "timestamp": self.timestamp.isoformat(),
        }
