"""Query Governor Domain Service.

Lexical classifier and rewriter that bounds free-form SELECT statements
before they reach the database. This is a heuristic, not a parser: common
table expressions (``WITH``) are treated as non-select and left alone, and
a query holding several statements is never rewritten and is reported as
non-select, since it may mix reads and writes.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Set

from .events import QueryAutoLimited
from .value_objects import (
    DEFAULT_AUTO_LIMIT,
    MODIFIED_WARNING,
    SIZE_RISK_WARNING,
    GovernedQuery,
    RiskFlag,
)

logger = logging.getLogger(__name__)

# Comments, string literals, quoted identifiers and dollar-quoted bodies.
_MASKABLE = re.compile(
    r"--[^\n]*"
    r"|/\*.*?\*/"
    r"|'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|\$([A-Za-z_][A-Za-z0-9_]*|)\$.*?\$\1\$",
    re.DOTALL,
)

_SELECT = re.compile(r"^\s*SELECT\b", re.IGNORECASE)
_BOUNDED = re.compile(r"\bLIMIT\b|\bFETCH\s+(?:FIRST|NEXT)\b", re.IGNORECASE)
_SELECT_STAR = re.compile(r"\bSELECT\s+(?:(?:DISTINCT|ALL)\s+)?(?:\w+\.)?\*", re.IGNORECASE)
_JOIN = re.compile(r"\bJOIN\b", re.IGNORECASE)
_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_ORDER_BY = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)
_AFTER_ORDER = re.compile(r"\b(?:OFFSET|FOR\s+(?:UPDATE|SHARE|NO\s+KEY|KEY))\b", re.IGNORECASE)
_TRAILER = re.compile(r"[\s;]*$")


def _mask(match: "re.Match[str]") -> str:
    token = match.group(0)
    if token.startswith(("--", "/*")):
        return " " * len(token)
    # Quoted text stays non-blank so it is never mistaken for trailing space.
    return "x" * len(token)


def mask_literals(sql: str) -> str:
    """Blank out comments and fill quoted text with ``x``, preserving offsets."""
    return _MASKABLE.sub(_mask, sql)


def flatten_parentheses(sql: str) -> str:
    """Blank out every parenthesized group, preserving offsets.

    What remains is the statement's top level. Unbalanced closing
    parentheses are ignored.
    """
    chars: List[str] = []
    depth = 0
    for char in sql:
        if char == "(":
            depth += 1
            chars.append(" ")
        elif char == ")":
            depth = max(0, depth - 1)
            chars.append(" ")
        else:
            chars.append(" " if depth else char)
    return "".join(chars)


class QueryGovernor:
    """Injects a LIMIT into unbounded SELECT statements.

    ``govern`` is total: any unexpected failure returns the input unchanged.
    """

    def __init__(
        self,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._event_publisher = event_publisher

    def govern(
        self,
        sql: str,
        auto_limit: int = DEFAULT_AUTO_LIMIT,
        disabled: bool = False,
    ) -> GovernedQuery:
        """Bound a SELECT statement with ``LIMIT auto_limit``.

        Args:
            sql: Statement text as supplied by the caller.
            auto_limit: Row cap to inject; values below 1 are raised to 1.
            disabled: Return the statement untouched.

        Returns:
            The governed query. Unchanged input carries no warnings.
        """
        try:
            return self._govern(sql, auto_limit, disabled)
        except Exception as e:
            logger.error(f"Query governor failed, passing statement through: {e}")
            return GovernedQuery.unchanged(sql)

    def _govern(self, sql: str, auto_limit: int, disabled: bool) -> GovernedQuery:
        text = sql.strip()
        masked = mask_literals(text)
        top = flatten_parentheses(masked)
        trailer = _TRAILER.search(masked)
        body_end = trailer.start() if trailer else len(masked)
        terminated = ";" in masked[body_end:]
        body, body_top = text[:body_end], top[:body_end]

        # Several statements may mix reads and writes; never treat them as a read.
        is_select = bool(_SELECT.match(masked)) and ";" not in body_top
        if disabled or not is_select:
            return GovernedQuery.unchanged(sql, is_select=is_select)

        if _BOUNDED.search(body_top):
            return GovernedQuery.unchanged(sql, is_select=True)

        limit = max(1, int(auto_limit))
        flags: Set[RiskFlag] = set()
        if _SELECT_STAR.search(masked):
            flags.add(RiskFlag.SELECT_STAR)
        if _JOIN.search(masked):
            flags.add(RiskFlag.JOIN)
        if not _WHERE.search(body_top):
            flags.add(RiskFlag.NO_WHERE)

        order_by = None
        for order_by in _ORDER_BY.finditer(body_top):
            pass

        if order_by is not None:
            tail = _AFTER_ORDER.search(body_top, order_by.end())
            if tail:
                rewritten = f"{body[:tail.start()].rstrip()} LIMIT {limit} {body[tail.start():]}"
            else:
                rewritten = f"{body} LIMIT {limit}"
            if terminated:
                rewritten += ";"
        else:
            rewritten = f"{body} LIMIT {limit};"

        warnings: List[str] = []
        if flags:
            warnings.append(SIZE_RISK_WARNING.format(limit=limit))
        warnings.append(MODIFIED_WARNING)

        ordered_flags = tuple(flag.value for flag in RiskFlag if flag in flags)
        logger.info(f"Auto-applied LIMIT {limit} to SELECT (risk flags: {', '.join(ordered_flags) or 'none'})")
        self._publish(QueryAutoLimited(
            original_sql=sql,
            governed_sql=rewritten,
            limit=limit,
            risk_flags=ordered_flags,
        ))
        return GovernedQuery(
            sql=rewritten,
            original_sql=sql,
            warnings=tuple(warnings),
            risk_flags=frozenset(flags),
            is_select=True,
            applied_limit=limit,
        )

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")
