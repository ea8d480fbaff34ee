"""Uniform error envelope for tool execution failures.

Upstream failures are categorized, given actionable suggestions and wrapped
together with the tool name, the redacted parameters and the project ref, so
an agent can tell what failed and whether retrying makes sense.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

REDACTED = "***"
MAX_PARAM_PREVIEW = 200


class ErrorCategory(Enum):
    """Failure categories, in the order they are checked."""
    AUTH = "auth"
    PERMISSIONS = "permissions"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CLIENT = "client"
    SERVER = "server"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE


_RETRYABLE = frozenset({
    ErrorCategory.NETWORK,
    ErrorCategory.TIMEOUT,
    ErrorCategory.RATE_LIMIT,
    ErrorCategory.SERVER,
})


class SuggestionAction(Enum):
    RETRY = "retry"
    FIX_PARAMS = "fix_params"
    CHECK_PERMISSIONS = "check_permissions"
    CONTACT_SUPPORT = "contact_support"


@dataclass(frozen=True)
class ErrorSuggestion:
    message: str
    action: Optional[SuggestionAction] = None
    learn_more_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"message": self.message}
        if self.action:
            data["action"] = self.action.value
        if self.learn_more_url:
            data["learn_more_url"] = self.learn_more_url
        return data


@dataclass(frozen=True)
class ErrorContext:
    """Identifying context of a failed tool call. ``params`` are redacted."""
    tool: str = ""
    params: Dict[str, Any] = field(default_factory=dict)
    project_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"tool": self.tool, "params": self.params}
        if self.project_id:
            data["project_id"] = self.project_id
        return data


class ToolExecutionError(Exception):
    """A categorized tool failure with suggestions and redacted context.

    Attributes:
        message: Human-readable message, prefixed with the tool name.
        category: Failure category.
        retryable: Whether the same call may succeed if repeated.
        suggestions: Ordered, actionable suggestions.
        context: Tool name, redacted params and project ref.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retryable: Optional[bool] = None,
        suggestions: Optional[List[ErrorSuggestion]] = None,
        context: Optional[ErrorContext] = None,
    ) -> None:
        self.message = message
        self.category = category
        self.retryable = category.retryable if retryable is None else retryable
        self.suggestions = list(suggestions or [])
        self.context = context or ErrorContext()
        super().__init__(message)

    def to_user_message(self) -> str:
        parts = [self.message]
        if self.suggestions:
            parts.append("\nSuggestions:")
            for index, suggestion in enumerate(self.suggestions, start=1):
                parts.append(f"  {index}. {suggestion.message}")
                if suggestion.learn_more_url:
                    parts.append(f"     Learn more: {suggestion.learn_more_url}")
        if self.retryable:
            parts.append("\nThis operation can be retried.")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
            "context": self.context.to_dict(),
        }


def _status_of(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    for attribute in ("status", "status_code"):
        status = getattr(error, attribute, None)
        if isinstance(status, int):
            return status
    return None


def categorize_error(error: BaseException) -> ErrorCategory:
    """Map an exception to an ErrorCategory by status, type, then message."""
    if isinstance(error, ToolExecutionError):
        return error.category

    status = _status_of(error)
    message = str(error).lower()

    if status == 401 or "unauthorized" in message or "authentication" in message:
        return ErrorCategory.AUTH
    if status == 403 or any(word in message for word in ("permission", "forbidden", "access denied")):
        return ErrorCategory.PERMISSIONS
    if status == 429 or "rate limit" in message:
        return ErrorCategory.RATE_LIMIT
    if status == 404 or "not found" in message:
        return ErrorCategory.NOT_FOUND
    if status in (400, 422) or type(error).__name__ == "ValidationError" or isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if status is not None and 400 <= status < 500:
        return ErrorCategory.CLIENT
    if status is not None and 500 <= status < 600:
        return ErrorCategory.SERVER
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)) or "timeout" in message:
        return ErrorCategory.TIMEOUT
    if isinstance(error, (httpx.TransportError, ConnectionError)) or "network" in message:
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def generate_suggestions(category: ErrorCategory, context: ErrorContext) -> List[ErrorSuggestion]:
    """Build category-specific suggestions for an agent or user."""
    suggestions: List[ErrorSuggestion] = []
    if category == ErrorCategory.AUTH:
        suggestions.append(ErrorSuggestion(
            "Check that your SUPABASE_ACCESS_TOKEN is valid and not expired",
            SuggestionAction.CHECK_PERMISSIONS,
        ))
        suggestions.append(ErrorSuggestion(
            "Verify you have access to this project", SuggestionAction.CHECK_PERMISSIONS,
        ))
    elif category == ErrorCategory.PERMISSIONS:
        suggestions.append(ErrorSuggestion(
            "Check that your access token has the required permissions for this operation",
            SuggestionAction.CHECK_PERMISSIONS,
        ))
        if "execute_sql" in context.tool:
            suggestions.append(ErrorSuggestion(
                "Verify your database user has the necessary table/column permissions",
                SuggestionAction.CHECK_PERMISSIONS,
            ))
    elif category == ErrorCategory.RATE_LIMIT:
        suggestions.append(ErrorSuggestion("Wait a few moments before retrying", SuggestionAction.RETRY))
        suggestions.append(ErrorSuggestion("Consider reducing the frequency of requests"))
    elif category == ErrorCategory.NOT_FOUND:
        if context.project_id:
            suggestions.append(ErrorSuggestion(
                f'Verify that project ID "{context.project_id}" exists and is accessible',
                SuggestionAction.FIX_PARAMS,
            ))
        suggestions.append(ErrorSuggestion(
            "Check the resource identifier for typos", SuggestionAction.FIX_PARAMS,
        ))
    elif category == ErrorCategory.VALIDATION:
        suggestions.append(ErrorSuggestion(
            "Review the tool parameters for invalid or missing values", SuggestionAction.FIX_PARAMS,
        ))
        if context.params:
            suggestions.append(ErrorSuggestion(f"Parameters provided: {', '.join(context.params)}"))
    elif category in (ErrorCategory.NETWORK, ErrorCategory.TIMEOUT):
        suggestions.append(ErrorSuggestion("Check your internet connection", SuggestionAction.RETRY))
        suggestions.append(ErrorSuggestion(
            "The operation can be retried automatically", SuggestionAction.RETRY,
        ))
    elif category == ErrorCategory.SERVER:
        suggestions.append(ErrorSuggestion(
            "This appears to be a temporary server issue", SuggestionAction.RETRY,
        ))
        suggestions.append(ErrorSuggestion("Try again in a few moments", SuggestionAction.RETRY))
    else:
        suggestions.append(ErrorSuggestion("Check the error details for more information"))
    return suggestions


class ParamRedactor:
    """Masks secret-like parameters and clips long values before they are reported."""

    SENSITIVE_KEYS: ClassVar[FrozenSet[str]] = frozenset({
        "token",
        "password",
        "secret",
        "api_key",
        "apikey",
        "credential",
        "authorization",
        "bearer",
        "private",
        "passphrase",
    })

    @classmethod
    def is_sensitive(cls, key: str) -> bool:
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in cls.SENSITIVE_KEYS)

    @classmethod
    def redact(cls, value: Any, key: str = "") -> Any:
        if key and cls.is_sensitive(key) and value is not None:
            return REDACTED
        if isinstance(value, Mapping):
            return {str(k): cls.redact(v, str(k)) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [cls.redact(item) for item in value]
        if isinstance(value, str) and len(value) > MAX_PARAM_PREVIEW:
            return f"{value[:MAX_PARAM_PREVIEW]}... ({len(value)} chars total)"
        return value


def redact_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Return a redacted copy of tool parameters safe to report."""
    if not params:
        return {}
    return ParamRedactor.redact(params)


def wrap_error(error: BaseException, context: ErrorContext) -> ToolExecutionError:
    """Wrap ``error`` in the uniform envelope. Already wrapped errors pass through."""
    if isinstance(error, ToolExecutionError):
        return error

    category = categorize_error(error)
    safe_context = ErrorContext(
        tool=context.tool,
        params=redact_params(context.params),
        project_id=context.project_id,
    )
    message = str(error) or type(error).__name__ or "An error occurred"
    if context.tool:
        message = f"Error in {context.tool}: {message}"

    wrapped = ToolExecutionError(
        message,
        category=category,
        suggestions=generate_suggestions(category, safe_context),
        context=safe_context,
    )
    wrapped.__cause__ = error
    logger.debug(f"Wrapped {type(error).__name__} as {category.value}: {message}")
    return wrapped
