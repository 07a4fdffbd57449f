"""Input validation and log sanitization helpers."""

import re
from typing import Any

# Order matters: the JWT pattern must run before the generic header pattern
_DEFAULT_PATTERNS = [
    (r"eyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]+", "[REDACTED_JWT]"),
    (r'(x-[a-z0-9-]*api-key["\']?\s*[:=]\s*["\']?)[^"\'\s,}]+', r"\1[REDACTED]"),
    (r'api_key["\']?\s*[:=]\s*["\']?[^"\'\s,}]+', "api_key=[REDACTED]"),
    (r'password["\']?\s*[:=]\s*["\']?[^"\'\s]+', "password=[REDACTED]"),
    (r'token["\']?\s*[:=]\s*["\']?[^"\'\s]+', "token=[REDACTED]"),
]


def sanitize_log_message(message: str, sensitive_patterns: list[str] | None = None) -> str:
    """Sanitize a log message to remove sensitive data.

    Args:
        message: Message to sanitize
        sensitive_patterns: Additional patterns to redact

    Returns:
        Sanitized message with sensitive data redacted
    """
    result = message

    for pattern, replacement in _DEFAULT_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)

    if sensitive_patterns:
        for pattern in sensitive_patterns:
            result = re.sub(pattern, "[REDACTED]", result, flags=re.IGNORECASE)

    return result


def require_fields(data: dict[str, Any], fields: list[str] | tuple[str, ...]) -> list[str]:
    """Return the names in *fields* that are absent or empty in *data*."""
    return [name for name in fields if data.get(name) in (None, "")]
