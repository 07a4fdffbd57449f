"""Configuration module for Hireflow."""

from .logging import (
    JSONFormatter,
    SanitizingFilter,
    TextFormatter,
    configure_from_settings,
    configure_logging,
    user_logger,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "configure_from_settings",
    "user_logger",
    "JSONFormatter",
    "SanitizingFilter",
    "TextFormatter",
]
