"""Shared utilities."""

from .validation import require_fields, sanitize_log_message

__all__ = ["sanitize_log_message", "require_fields"]
