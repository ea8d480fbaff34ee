"""Query Governor Bounded Context.

Pre-emptively bounds free-form SQL result sets by injecting a LIMIT into
unbounded SELECT statements before they are executed.
"""
from .events import QueryAutoLimited
from .services import QueryGovernor, flatten_parentheses, mask_literals
from .value_objects import (
    DEFAULT_AUTO_LIMIT, MODIFIED_WARNING, SIZE_RISK_WARNING,
    GovernedQuery, RiskFlag,
)

__all__ = [
    "QueryAutoLimited",
    "QueryGovernor", "flatten_parentheses", "mask_literals",
    "DEFAULT_AUTO_LIMIT", "MODIFIED_WARNING", "SIZE_RISK_WARNING",
    "GovernedQuery", "RiskFlag",
]
