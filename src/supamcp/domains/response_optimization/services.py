"""Response Optimization Domain Services.

Bounded response projection runs in three stages for every tool call:

1. ``ArrayCapper`` filters the raw upstream sequence (glob, categorical,
   text search, numeric range, max count) before anything is reshaped.
2. ``FieldProjector`` reshapes each surviving entity through the
   ``FIELD_POLICIES`` table for the requested format.
3. ``BudgetEnforcer`` serializes the projected value and, only when it is
   over budget, walks the degradation ladder until it fits.

``ResponseProcessor`` wires the three together and publishes events.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..shared.kernel import is_empty, serialize
from .events import ResponseFiltered, ResponseTruncated
from .policies import ELLIPSIS, FieldPolicy, get_field_policy
from .value_objects import (
    Budget,
    EntityKind,
    FilterSpec,
    FormatTier,
    ResponseFormat,
    TokenEstimate,
    compile_glob,
)

logger = logging.getLogger(__name__)

HEADER_SEPARATOR = "\n\n"
WARNING_PREFIX = "Warning: "
UNSERIALIZABLE = "<unserializable value>"


def excerpt(text: str, length: int) -> str:
    """Clip ``text`` to ``length`` characters, marking the cut with an ellipsis."""
    if len(text) <= length:
        return text
    return text[:length] + ELLIPSIS


def _format_bound(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# =============================================================================
# Field Projector
# =============================================================================


class FieldProjector:
    """Reshapes entities according to the field policy table."""

    def project(self, entity: Any, kind: EntityKind, fmt: ResponseFormat) -> Any:
        """Project one entity. Non-mapping values pass through unchanged."""
        if not isinstance(entity, dict):
            return entity
        return self._apply(entity, get_field_policy(kind, fmt), fmt)

    def project_many(
        self, items: Iterable[Any], kind: EntityKind, fmt: ResponseFormat,
    ) -> List[Any]:
        return [self.project(item, kind, fmt) for item in items]

    def _apply(self, entity: Dict[str, Any], policy: FieldPolicy, fmt: ResponseFormat) -> Dict[str, Any]:
        consumed = policy.consumed_flags
        renames = dict(policy.renames)
        nested = dict(policy.nested)

        result: Dict[str, Any] = {}
        for key, value in entity.items():
            if key in consumed:
                continue
            target = renames.get(key, key)
            # Several source fields may map onto one name; the first non-empty wins.
            if target in result and not is_empty(result[target]):
                continue
            result[target] = value

        if policy.option_flags:
            result[policy.options_field] = [
                label for source, label in policy.option_flags if entity.get(source) is True
            ]
        for source, target in policy.counts:
            collection = result.get(source)
            result[target] = len(collection) if isinstance(collection, (list, tuple, dict)) else 0
        for source, target in policy.presence:
            result[target] = not is_empty(result.get(source))
        for source, target, length in policy.excerpts:
            text = result.get(source)
            if isinstance(text, str):
                result[target] = excerpt(text, length)

        for field_name, nested_kind in nested.items():
            collection = result.get(field_name)
            if isinstance(collection, (list, tuple)):
                result[field_name] = self.project_many(collection, nested_kind, fmt)

        if policy.keep is not None:
            result = {name: result[name] for name in policy.keep if name in result}
        if policy.drop:
            result = {name: value for name, value in result.items() if name not in policy.drop}
        if policy.omit_empty:
            result = {name: value for name, value in result.items() if not is_empty(value)}
        return result


# =============================================================================
# Array Capper
# =============================================================================


class ArrayCapper:
    """Applies pre-projection filters to a sequence.

    Filter order: name glob, categorical value, text search, numeric range,
    then the hard item cap. Relative order of items is always preserved.
    """

    def cap(self, items: Sequence[Any], spec: Optional[FilterSpec]) -> List[Any]:
        result = list(items)
        if spec is None or spec.is_noop:
            return result

        if spec.name_pattern:
            regex = compile_glob(spec.name_pattern)
            result = [
                item for item in result
                if isinstance(self._field(item, spec.name_field), str)
                and regex.match(self._field(item, spec.name_field))
            ]

        if spec.allowed_values is not None and spec.value_field:
            allowed = {value.lower() for value in spec.allowed_values}
            result = [
                item for item in result
                if str(self._field(item, spec.value_field) or "").lower() in allowed
            ]

        if spec.search_text:
            needle = spec.search_text.lower()
            result = [item for item in result if needle in self._searchable(item)]

        if spec.range_field and (spec.min_value is not None or spec.max_value is not None):
            result = [item for item in result if self._in_range(item, spec)]

        if spec.max_items is not None:
            result = result[:max(0, spec.max_items)]

        return result

    def describe(self, spec: Optional[FilterSpec]) -> str:
        """Render the filter context suffix used in context labels."""
        if spec is None:
            return ""
        parts: List[str] = []
        if spec.name_pattern:
            parts.append(f"(filtered: {spec.name_pattern})")
        if spec.search_text:
            parts.append(f"(search: {spec.search_text})")
        label = spec.range_label or spec.range_field or "value"
        if spec.min_value is not None:
            parts.append(f"(min {label}: {_format_bound(spec.min_value)})")
        if spec.max_value is not None:
            parts.append(f"(max {label}: {_format_bound(spec.max_value)})")
        if spec.max_items is not None:
            parts.append(f"(max items: {spec.max_items})")
        return " ".join(parts)

    @staticmethod
    def _field(item: Any, name: str) -> Any:
        if isinstance(item, dict):
            return item.get(name)
        return None

    @staticmethod
    def _searchable(item: Any) -> str:
        try:
            return serialize(item).lower()
        except (TypeError, ValueError, RecursionError):
            return str(item).lower()

    def _in_range(self, item: Any, spec: FilterSpec) -> bool:
        value = self._field(item, spec.range_field or "")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if spec.min_value is not None and value < spec.min_value:
            return False
        if spec.max_value is not None and value > spec.max_value:
            return False
        return True


# =============================================================================
# Budget Enforcer
# =============================================================================


@dataclass(frozen=True)
class EnforcedResponse:
    """Result of budget enforcement.

    ``warnings`` is non-empty exactly when something was cut. ``notes`` are
    informational lines supplied by the caller.
    """
    text: str
    warnings: Tuple[str, ...] = ()
    notes: Tuple[str, ...] = ()
    original_tokens: int = 0
    final_tokens: int = 0
    items_total: Optional[int] = None
    items_kept: Optional[int] = None

    @property
    def truncated(self) -> bool:
        return bool(self.warnings)


class BudgetEnforcer:
    """Serializes a value and guarantees it fits a token budget.

    Degradation ladder, applied only when the serialized value is over
    budget:

    1. Sequence: keep the largest prefix that fits (capped by
       ``max_array_items``).
    2. Mapping: trim its largest sequence field the same way.
    3. Hard-truncate the serialized text and append an ellipsis marker.

    The header (context label, notes and, when ``include_warning`` is set,
    the warnings) is counted against the budget and dropped if it does not
    fit. ``enforce`` never raises.
    """

    def enforce(
        self,
        value: Any,
        context: str,
        budget: Budget,
        notes: Sequence[str] = (),
    ) -> EnforcedResponse:
        notes = tuple(note for note in notes if note)
        try:
            return self._enforce(value, context, budget, notes)
        except Exception as e:
            logger.error(f"Budget enforcement failed, falling back to raw truncation: {e}")
            return self._fallback(value, budget, notes)

    # ------------------------------------------------------------------ ladder

    def _enforce(
        self, value: Any, context: str, budget: Budget, notes: Tuple[str, ...],
    ) -> EnforcedResponse:
        payload = value if isinstance(value, str) else serialize(value)
        original = TokenEstimate.from_text(payload, budget.max_tokens)
        is_sequence = isinstance(value, (list, tuple))
        items_total = len(value) if is_sequence else None

        if original.within_budget:
            header = self._header(context, notes, ())
            return self._finish(
                header, payload, budget, (), notes, original.estimated_tokens,
                items_total, items_total,
            )

        reserved = self._header(
            context, notes,
            self._worst_case_warnings(value, original.estimated_tokens, budget),
        )
        limit = self._payload_limit(budget.max_chars, reserved)

        cut: List[str] = []
        items_kept: Optional[int] = None
        reduced: Optional[str] = None

        if is_sequence and value:
            upper = len(value)
            if budget.max_array_items is not None:
                upper = min(upper, budget.max_array_items)
            kept = self._largest_prefix(lambda k: len(serialize(list(value[:k]))), upper, limit)
            if kept > 0:
                reduced = serialize(list(value[:kept]))
                items_kept = kept
                cut.append(f"showing {kept} of {len(value)} items")
            else:
                items_kept = 0
                cut.append(f"showing 0 of {len(value)} complete items")
                reduced = self._truncate_text(serialize(list(value[:max(1, upper)])), limit)
                cut.append("payload hard-truncated to fit the size budget")
        elif isinstance(value, dict):
            trimmed = self._trim_largest_field(value, limit)
            if trimmed is not None:
                reduced, field_name, kept, total = trimmed
                cut.append(f"showing {kept} of {total} items in '{field_name}'")

        if reduced is None:
            reduced = self._truncate_text(payload, limit)
            cut.append("payload hard-truncated to fit the size budget")

        final_tokens = TokenEstimate.from_text(reduced).estimated_tokens
        cut.append(
            f"response size reduced from ~{original.estimated_tokens} to ~{final_tokens} tokens"
        )
        warnings = tuple(cut)
        header = self._header(context, notes, warnings if budget.include_warning else ())
        return self._finish(
            header, reduced, budget, warnings, notes, original.estimated_tokens,
            items_total, items_kept,
        )

    def _trim_largest_field(
        self, value: Dict[str, Any], limit: int,
    ) -> Optional[Tuple[str, str, int, int]]:
        candidates = [
            (len(serialize(item)), name)
            for name, item in value.items()
            if isinstance(item, (list, tuple)) and item
        ]
        if not candidates:
            return None
        _, field_name = max(candidates)
        items = list(value[field_name])

        def size_of(k: int) -> int:
            return len(serialize({**value, field_name: items[:k]}))

        kept = self._largest_prefix(size_of, len(items), limit)
        if kept < 0:
            return None
        return serialize({**value, field_name: items[:kept]}), field_name, kept, len(items)

    @staticmethod
    def _largest_prefix(size_of: Callable[[int], int], upper: int, limit: int) -> int:
        """Largest k in [0, upper] with size_of(k) <= limit, or -1 if none.

        ``size_of`` must be non-decreasing in k.
        """
        if size_of(0) > limit:
            return -1
        lo, hi = 0, upper
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if size_of(mid) <= limit:
                lo = mid
            else:
                hi = mid - 1
        return lo

    # ----------------------------------------------------------------- helpers

    @staticmethod
    def _payload_limit(max_chars: int, header: str) -> int:
        # Non-decreasing in max_chars, so larger budgets never keep fewer items.
        reserve = len(header) + len(HEADER_SEPARATOR) if header else 0
        return max(max_chars - reserve, max_chars // 2)

    @staticmethod
    def _truncate_text(text: str, limit: int) -> str:
        if len(text) <= limit:
            return text
        if limit <= len(ELLIPSIS):
            return text[:max(0, limit)]
        return text[:limit - len(ELLIPSIS)] + ELLIPSIS

    @staticmethod
    def _worst_case_warnings(value: Any, original_tokens: int, budget: Budget) -> Tuple[str, ...]:
        if not budget.include_warning:
            return ()
        width = 10 ** len(str(original_tokens)) - 1
        lines = []
        if isinstance(value, (list, tuple)):
            lines.append(f"showing {len(value)} of {len(value)} complete items")
        elif isinstance(value, dict):
            longest_name = max((len(str(name)) for name in value), default=0)
            largest = max(
                (len(item) for item in value.values() if isinstance(item, (list, tuple))),
                default=0,
            )
            lines.append(f"showing {largest} of {largest} items in '{'x' * longest_name}'")
        lines.append("payload hard-truncated to fit the size budget")
        lines.append(f"response size reduced from ~{original_tokens} to ~{width} tokens")
        return tuple(lines)

    @staticmethod
    def _header(context: str, notes: Sequence[str], warnings: Sequence[str]) -> str:
        lines = [context] if context else []
        lines.extend(notes)
        lines.extend(f"{WARNING_PREFIX}{warning}" for warning in warnings)
        return "\n".join(lines)

    @staticmethod
    def _finish(
        header: str,
        payload: str,
        budget: Budget,
        warnings: Tuple[str, ...],
        notes: Tuple[str, ...],
        original_tokens: int,
        items_total: Optional[int],
        items_kept: Optional[int],
    ) -> EnforcedResponse:
        # Context and notes are given up before the truncation warnings.
        candidates = [header]
        if warnings and budget.include_warning:
            candidates.append(BudgetEnforcer._header("", (), warnings))
            candidates.append(BudgetEnforcer._header("", (), warnings[:1]))
        text = payload
        for candidate in candidates:
            framed = f"{candidate}{HEADER_SEPARATOR}{payload}"
            if candidate and len(framed) <= budget.max_chars:
                text = framed
                break
        return EnforcedResponse(
            text=text,
            warnings=warnings,
            notes=notes,
            original_tokens=original_tokens,
            final_tokens=TokenEstimate.from_text(text).estimated_tokens,
            items_total=items_total,
            items_kept=items_kept,
        )

    def _fallback(self, value: Any, budget: Budget, notes: Tuple[str, ...]) -> EnforcedResponse:
        try:
            raw = repr(value)
        except Exception:
            raw = UNSERIALIZABLE
        original_tokens = TokenEstimate.from_text(raw).estimated_tokens
        text = self._truncate_text(raw, budget.max_chars)
        warnings: Tuple[str, ...] = ()
        if text != raw:
            warnings = (
                "payload hard-truncated to fit the size budget",
                f"response size reduced from ~{original_tokens} to "
                f"~{TokenEstimate.from_text(text).estimated_tokens} tokens",
            )
        return EnforcedResponse(
            text=text,
            warnings=warnings,
            notes=notes,
            original_tokens=original_tokens,
            final_tokens=TokenEstimate.from_text(text).estimated_tokens,
        )


# =============================================================================
# Response Processor
# =============================================================================


class ResponseProcessor:
    """Runs cap, project and enforce for one tool response."""

    def __init__(
        self,
        projector: Optional[FieldProjector] = None,
        capper: Optional[ArrayCapper] = None,
        enforcer: Optional[BudgetEnforcer] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self.projector = projector or FieldProjector()
        self.capper = capper or ArrayCapper()
        self.enforcer = enforcer or BudgetEnforcer()
        self._event_publisher = event_publisher

    def process(
        self,
        data: Any,
        kind: EntityKind,
        tier: FormatTier,
        context: str,
        filter_spec: Optional[FilterSpec] = None,
        notes: Sequence[str] = (),
        tool_name: str = "",
        budget: Optional[Budget] = None,
        include_warning: bool = True,
    ) -> EnforcedResponse:
        """Project ``data`` at ``tier`` and enforce the tier's budget.

        Args:
            data: Upstream result, a sequence of entities or a single entity.
            kind: Entity kind used to select field policies.
            tier: Format tier selecting projection and budget.
            context: Context label placed in the header.
            filter_spec: Optional pre-projection filters (sequences only).
            notes: Informational header lines.
            tool_name: Tool name used in published events.
            budget: Overrides the tier's budget (e.g. after reserving framing).
            include_warning: Whether warnings are rendered into the text.

        Returns:
            The enforced response.
        """
        budget = budget or tier.budget(include_warning=include_warning)

        if isinstance(data, (list, tuple)):
            before = len(data)
            capped = self.capper.cap(data, filter_spec)
            if len(capped) != before:
                logger.debug(f"{tool_name}: filters kept {len(capped)} of {before} items")
                self._publish(ResponseFiltered(
                    tool_name=tool_name,
                    items_before=before,
                    items_after=len(capped),
                    filters=self.capper.describe(filter_spec),
                ))
            projected: Any = self.projector.project_many(capped, kind, tier.projection)
        else:
            projected = self.projector.project(data, kind, tier.projection)

        result = self.enforcer.enforce(projected, context, budget, notes)
        if result.truncated:
            logger.info(
                f"{tool_name}: response reduced from ~{result.original_tokens} "
                f"to ~{result.final_tokens} tokens (budget {budget.max_tokens})"
            )
            self._publish(ResponseTruncated(
                tool_name=tool_name,
                context=context,
                budget_tokens=budget.max_tokens,
                original_tokens=result.original_tokens,
                final_tokens=result.final_tokens,
                items_total=result.items_total,
                items_kept=result.items_kept,
            ))
        else:
            logger.debug(f"{tool_name}: response fits at ~{result.final_tokens} tokens")
        return result

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")
