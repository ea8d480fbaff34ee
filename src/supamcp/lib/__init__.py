"""Cross-cutting helpers: the error envelope and the retry policy."""

from supamcp.lib.errors import (
    ErrorCategory,
    ErrorContext,
    ErrorSuggestion,
    ToolExecutionError,
    categorize_error,
    redact_params,
    wrap_error,
)
from supamcp.lib.retry import RetryHandler

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ErrorSuggestion",
    "ToolExecutionError",
    "categorize_error",
    "redact_params",
    "wrap_error",
    "RetryHandler",
]
