"""Logging setup for provisioning and webhook relay.

Records carry per-user context through ``extra=`` (or :func:`user_logger`)
so that a user's provisioning run can be followed across modules::

    log = user_logger(logger, "u1", template="busy-slots")
    log.info("Reserved")  # user_id and template land on the record
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from hireflow.utils.validation import sanitize_log_message

if TYPE_CHECKING:
    from .settings import Settings

# Context attributes copied from records into structured output
CONTEXT_FIELDS = (
    "user_id",
    "template",
    "remote_id",
    "event_kind",
    "status_code",
    "duration_ms",
)

# Libraries whose INFO output is per-request noise
_QUIET_LOGGERS = ("httpx", "httpcore")


class SanitizingFilter(logging.Filter):
    """Redact engine credentials from messages and string arguments.

    Besides the generic key/token patterns, the literal values in
    *secrets* (the configured engine API key) are replaced wherever they
    appear.
    """

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        self._secrets = [s for s in secrets if s]

    def _clean(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, "[REDACTED]")
        return sanitize_log_message(text)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = self._clean(str(record.msg))
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._clean(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with per-user context fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines; context fields are appended as ``key=value``."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if context:
            line = f"{line} [{' '.join(context)}]"
        return line


class _ContextAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def user_logger(logger: logging.Logger, user_id: str, **context: Any) -> logging.LoggerAdapter:
    """Wrap *logger* so every record carries *user_id* and *context*."""
    return _ContextAdapter(logger, {"user_id": user_id, **context})


def configure_logging(
    level: str = "INFO",
    format: str = "text",
    sanitize_logs: bool = True,
    secrets: Iterable[str] = (),
) -> None:
    """Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format ('text' or 'json')
        sanitize_logs: If True, redact API keys and tokens from logs
        secrets: Literal values to redact in addition to the generic patterns
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(JSONFormatter() if format.lower() == "json" else TextFormatter())
    if sanitize_logs:
        console_handler.addFilter(SanitizingFilter(secrets))
    root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_from_settings(settings: Settings | None = None) -> None:
    """Configure logging from ``LOG_LEVEL``, ``LOG_FORMAT`` and ``SANITIZE_LOGS``.

    The configured engine API key is always redacted when sanitizing.
    """
    if settings is None:
        from .settings import get_settings

        settings = get_settings()
    configure_logging(
        level=settings.log_level,
        format=settings.log_format,
        sanitize_logs=settings.sanitize_logs,
        secrets=[settings.engine_api_key],
    )
