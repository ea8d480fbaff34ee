"""Configuration models."""

from supamcp.models.config_models import ServerConfig

__all__ = ["ServerConfig"]
