"""Response Profile Repository."""
from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol

from .aggregates import DEFAULT_PROFILES, ToolResponseProfile


class ToolResponseProfileRepository(Protocol):
    """Protocol for profile lookup."""

    def get(self, tool_name: str) -> Optional[ToolResponseProfile]: ...
    def save(self, profile: ToolResponseProfile) -> None: ...


class InMemoryProfileRepository:
    """In-memory profile store keyed by tool name."""

    def __init__(self, profiles: Optional[Iterable[ToolResponseProfile]] = None) -> None:
        self._profiles: Dict[str, ToolResponseProfile] = {}
        for profile in profiles if profiles is not None else DEFAULT_PROFILES.values():
            self.save(profile)

    def get(self, tool_name: str) -> Optional[ToolResponseProfile]:
        return self._profiles.get(tool_name)

    def require(self, tool_name: str) -> ToolResponseProfile:
        profile = self._profiles.get(tool_name)
        if profile is None:
            raise KeyError(f"No response profile registered for tool '{tool_name}'")
        return profile

    def save(self, profile: ToolResponseProfile) -> None:
        self._profiles[profile.tool_name] = profile

    def remove(self, tool_name: str) -> None:
        self._profiles.pop(tool_name, None)
