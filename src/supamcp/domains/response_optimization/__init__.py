"""Response Optimization Bounded Context.

Bounded response projection for tool outputs: filter the upstream sequence,
reshape each entity through a named field policy, then enforce the tier's
token budget with a degradation ladder that always reports what it cut.
"""
from .aggregates import DEFAULT_PROFILES, ToolResponseProfile
from .events import ResponseFiltered, ResponseTruncated
from .policies import FIELD_POLICIES, FieldPolicy, get_field_policy
from .repository import InMemoryProfileRepository, ToolResponseProfileRepository
from .services import (
    ArrayCapper, BudgetEnforcer, EnforcedResponse, FieldProjector,
    ResponseProcessor, excerpt,
)
from .types_bundle import filter_types_bundle, summarize_types_bundle
from .value_objects import (
    Budget, EntityKind, FilterSpec, FormatTier, ResponseFormat,
    TokenEstimate, compile_glob, estimate_tokens,
)

__all__ = [
    "DEFAULT_PROFILES", "ToolResponseProfile",
    "ResponseFiltered", "ResponseTruncated",
    "FIELD_POLICIES", "FieldPolicy", "get_field_policy",
    "InMemoryProfileRepository", "ToolResponseProfileRepository",
    "ArrayCapper", "BudgetEnforcer", "EnforcedResponse", "FieldProjector",
    "ResponseProcessor", "excerpt",
    "filter_types_bundle", "summarize_types_bundle",
    "Budget", "EntityKind", "FilterSpec", "FormatTier", "ResponseFormat",
    "TokenEstimate", "compile_glob", "estimate_tokens",
]
