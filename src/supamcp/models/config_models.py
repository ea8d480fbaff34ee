"""Configuration data models."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.supabase.com"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning(f"Invalid boolean for {name}={raw!r}, using default {default}")
    return default


def _env_number(environ: Mapping[str, str], name: str, default: Any, cast: Any, minimum: Any) -> Any:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning(f"Invalid value for {name}={raw!r}, using default {default}")
        return default
    if value < minimum:
        logger.warning(f"{name}={raw!r} is below the minimum {minimum}, using default {default}")
        return default
    return value


@dataclass(frozen=True)
class ServerConfig:
    """Runtime settings for the gateway.

    Attributes:
        access_token: Personal access token for the management API.
        api_url: Management API base URL.
        project_ref: Project used when a tool call does not name one.
        read_only: Refuse mutating tools and run SQL as read-only.
        cache_enabled: Memoize read-only tool results.
        cache_max_size: Maximum number of cached results.
        retry_attempts: Total attempts for idempotent upstream calls.
        retry_delay: Seconds between retry attempts.
        http_timeout: Per-request timeout in seconds.
        log_level: Root log level name.
    """

    access_token: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    project_ref: Optional[str] = None
    read_only: bool = False
    cache_enabled: bool = True
    cache_max_size: int = 1000
    retry_attempts: int = 3
    retry_delay: float = 1.0
    http_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Load configuration from environment variables.

        Invalid numeric or boolean values fall back to the defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            access_token=(env.get("SUPABASE_ACCESS_TOKEN") or "").strip() or None,
            api_url=(env.get("SUPAMCP_API_URL") or "").strip() or defaults.api_url,
            project_ref=(env.get("SUPAMCP_PROJECT_REF") or "").strip() or None,
            read_only=_env_bool(env, "SUPAMCP_READ_ONLY", defaults.read_only),
            cache_enabled=_env_bool(env, "SUPAMCP_CACHE_ENABLED", defaults.cache_enabled),
            cache_max_size=_env_number(env, "SUPAMCP_CACHE_MAX_SIZE", defaults.cache_max_size, int, 1),
            retry_attempts=_env_number(env, "SUPAMCP_RETRY_ATTEMPTS", defaults.retry_attempts, int, 1),
            retry_delay=_env_number(env, "SUPAMCP_RETRY_DELAY", defaults.retry_delay, float, 0.0),
            http_timeout=_env_number(env, "SUPAMCP_HTTP_TIMEOUT", defaults.http_timeout, float, 0.1),
            log_level=(env.get("SUPAMCP_LOG_LEVEL") or "").strip().upper() or defaults.log_level,
        )

    def with_overrides(
        self,
        *,
        project_ref: Optional[str] = None,
        read_only: Optional[bool] = None,
        api_url: Optional[str] = None,
        cache_enabled: Optional[bool] = None,
        log_level: Optional[str] = None,
    ) -> "ServerConfig":
        """Return a copy with the provided overrides applied."""
        cfg = self
        if project_ref:
            cfg = replace(cfg, project_ref=project_ref)
        if read_only is not None:
            cfg = replace(cfg, read_only=read_only)
        if api_url:
            cfg = replace(cfg, api_url=api_url)
        if cache_enabled is not None:
            cfg = replace(cfg, cache_enabled=cache_enabled)
        if log_level:
            cfg = replace(cfg, log_level=log_level.upper())
        return cfg

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary with the token masked."""
        data = {key: value for key, value in self.__dict__.items() if not key.startswith("_")}
        if data.get("access_token"):
            data["access_token"] = "***"
        return data
