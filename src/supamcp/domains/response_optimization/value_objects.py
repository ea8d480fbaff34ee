"""Response Optimization Value Objects."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, ClassVar, FrozenSet, Optional

from ..shared.kernel import serialize


class ResponseFormat(Enum):
    """Projection format, from coarsest to finest."""
    NAMES_ONLY = "names_only"        # Identity fields + one cardinality hint
    CRITICAL_ONLY = "critical_only"  # Highest-severity findings, summarized
    ERRORS_ONLY = "errors_only"      # Error/warning log records, compacted
    SUMMARY = "summary"              # Nested collections replaced by counts
    COMPACT = "compact"              # Same granularity as SUMMARY, for streams
    DETAILED = "detailed"            # Nested collections preserved

    @classmethod
    def from_string(cls, value: str) -> ResponseFormat:
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown response format '{value}'. Valid: {valid}")


class EntityKind(Enum):
    """Kinds of upstream entities that have field policies."""
    TABLE = "table"
    COLUMN = "column"
    RELATIONSHIP = "relationship"
    PRIMARY_KEY = "primary_key"
    EXTENSION = "extension"
    MIGRATION = "migration"
    LOG_ENTRY = "log_entry"
    ADVISOR = "advisor"
    TYPES_BUNDLE = "types_bundle"
    SQL_ROW = "sql_row"


@dataclass(frozen=True)
class TokenEstimate:
    """Token count estimate for budget checking.

    A deliberate character-count approximation: deterministic, monotonic in
    the serialized length and linear to compute.
    """
    char_count: int
    estimated_tokens: int
    budget: int
    CHARS_PER_TOKEN: ClassVar[int] = 4

    @classmethod
    def from_text(cls, text: str, budget: int = 0) -> TokenEstimate:
        char_count = len(text)
        return cls(
            char_count=char_count,
            estimated_tokens=math.ceil(char_count / cls.CHARS_PER_TOKEN),
            budget=budget,
        )

    @classmethod
    def from_value(cls, value: Any, budget: int = 0) -> TokenEstimate:
        text = value if isinstance(value, str) else serialize(value)
        return cls.from_text(text, budget)

    @property
    def within_budget(self) -> bool:
        return self.estimated_tokens <= self.budget

    @property
    def overage(self) -> int:
        return max(0, self.estimated_tokens - self.budget)


def estimate_tokens(value: Any) -> int:
    """Approximate token count of a value's canonical serialization."""
    return TokenEstimate.from_value(value).estimated_tokens


@dataclass(frozen=True)
class Budget:
    """Size budget for a single tool response. Immutable per call."""
    max_tokens: int
    max_array_items: Optional[int] = None
    include_warning: bool = True

    def __post_init__(self) -> None:
        if self.max_tokens <= 0:
            raise ValueError("Token budget must be positive")
        if self.max_array_items is not None and self.max_array_items <= 0:
            raise ValueError("max_array_items must be positive when set")

    @property
    def max_chars(self) -> int:
        return self.max_tokens * TokenEstimate.CHARS_PER_TOKEN

    def reserve(self, tokens: int) -> Budget:
        """Return a budget shrunk by ``tokens`` for caller-added framing."""
        return replace(self, max_tokens=max(1, self.max_tokens - max(0, tokens)))


@dataclass(frozen=True)
class FormatTier:
    """A named degree of detail offered by a tool, bound to a budget."""
    name: str
    max_tokens: int
    projection: ResponseFormat = ResponseFormat.DETAILED
    max_array_items: Optional[int] = None

    def budget(self, include_warning: bool = True) -> Budget:
        return Budget(
            max_tokens=self.max_tokens,
            max_array_items=self.max_array_items,
            include_warning=include_warning,
        )


def compile_glob(pattern: str) -> re.Pattern:  # type: ignore[type-arg]
    """Translate a glob (``*`` any run, ``?`` one char) into an anchored regex."""
    escaped = re.escape(pattern)
    translated = escaped.replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{translated}$", re.IGNORECASE)


@dataclass(frozen=True)
class FilterSpec:
    """Pre-projection filters applied to a sequence of entities.

    Attributes:
        name_pattern: Glob matched case-insensitively against ``name_field``.
        name_field: Field holding the entity name.
        value_field: Field used by the categorical filter.
        allowed_values: Keep only items whose ``value_field`` is in this set.
        search_text: Case-insensitive substring searched in the serialized item.
        range_field: Numeric field used by the range filter.
        range_label: Name shown for the range bounds in context labels.
        min_value: Inclusive lower bound (None = unbounded).
        max_value: Inclusive upper bound (None = unbounded).
        max_items: Hard cap applied last, keeping the first N items in order.
    """
    name_pattern: Optional[str] = None
    name_field: str = "name"
    value_field: Optional[str] = None
    allowed_values: Optional[FrozenSet[str]] = None
    search_text: Optional[str] = None
    range_field: Optional[str] = None
    range_label: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    max_items: Optional[int] = None

    @property
    def is_noop(self) -> bool:
        return (
            not self.name_pattern
            and self.allowed_values is None
            and not self.search_text
            and self.min_value is None
            and self.max_value is None
            and self.max_items is None
        )
