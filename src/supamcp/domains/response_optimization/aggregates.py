"""Response Optimization Aggregate Root."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from .value_objects import Budget, FormatTier, ResponseFormat


@dataclass(frozen=True)
class ToolResponseProfile:
    """Aggregate root for the response tiers a single tool offers.

    Invariants:
    - At least one tier
    - Tier names are unique
    - Budgets are monotonically non-decreasing in offer order
    - The default tier is one of the offered tiers
    """
    tool_name: str
    tiers: Tuple[FormatTier, ...]
    default_tier: str

    __test__ = False  # Suppress pytest collection

    def __post_init__(self) -> None:
        if not self.tiers:
            raise ValueError(f"Profile for '{self.tool_name}' must offer at least one tier")
        names = [tier.name for tier in self.tiers]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate tier names in profile for '{self.tool_name}': {names}")
        for previous, current in zip(self.tiers, self.tiers[1:]):
            if current.max_tokens < previous.max_tokens:
                raise ValueError(
                    f"Tier budgets for '{self.tool_name}' must be non-decreasing: "
                    f"{previous.name}={previous.max_tokens} > {current.name}={current.max_tokens}"
                )
        if self.default_tier not in names:
            raise ValueError(
                f"Default tier '{self.default_tier}' is not offered by '{self.tool_name}'"
            )

    @property
    def tier_names(self) -> Tuple[str, ...]:
        return tuple(tier.name for tier in self.tiers)

    def tier(self, name: str | None = None) -> FormatTier:
        """Resolve a tier by name (case-insensitive); None selects the default."""
        wanted = (name or self.default_tier).strip().lower()
        for tier in self.tiers:
            if tier.name == wanted:
                return tier
        raise ValueError(
            f"Unknown response tier '{name}' for {self.tool_name}. "
            f"Valid: {', '.join(self.tier_names)}"
        )

    def budget_for(self, name: str | None = None, include_warning: bool = True) -> Budget:
        return self.tier(name).budget(include_warning=include_warning)


def _profile(tool_name: str, default: str, *tiers: FormatTier) -> ToolResponseProfile:
    return ToolResponseProfile(tool_name=tool_name, tiers=tuple(tiers), default_tier=default)


_F = ResponseFormat

DEFAULT_PROFILES: Dict[str, ToolResponseProfile] = {
    profile.tool_name: profile
    for profile in (
        _profile(
            "list_tables", "summary",
            FormatTier("names_only", 3000, _F.NAMES_ONLY),
            FormatTier("summary", 8000, _F.SUMMARY),
            FormatTier("detailed", 12000, _F.DETAILED),
        ),
        _profile(
            "list_extensions", "summary",
            FormatTier("summary", 3000, _F.SUMMARY),
            FormatTier("detailed", 8000, _F.DETAILED),
        ),
        _profile(
            "list_migrations", "detailed",
            FormatTier("detailed", 5000, _F.DETAILED),
        ),
        _profile(
            "execute_sql", "medium",
            FormatTier("small", 2000, _F.DETAILED),
            FormatTier("medium", 5000, _F.DETAILED),
            FormatTier("large", 8000, _F.DETAILED),
        ),
        _profile(
            "get_logs", "compact",
            FormatTier("errors_only", 5000, _F.ERRORS_ONLY),
            FormatTier("compact", 8000, _F.COMPACT),
            FormatTier("detailed", 12000, _F.DETAILED),
        ),
        _profile(
            "get_advisors", "summary",
            FormatTier("critical_only", 5000, _F.CRITICAL_ONLY),
            FormatTier("summary", 8000, _F.SUMMARY),
            FormatTier("detailed", 12000, _F.DETAILED),
        ),
        _profile(
            "generate_typescript_types", "medium",
            FormatTier("small", 5000, _F.DETAILED),
            FormatTier("medium", 12000, _F.DETAILED),
            FormatTier("large", 18000, _F.DETAILED),
        ),
        _profile(
            "generate_typescript_types_summary", "summary",
            FormatTier("summary", 3000, _F.SUMMARY),
        ),
    )
}
