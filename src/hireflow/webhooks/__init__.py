"""Webhook relay for domain events."""

from .models import DEFAULT_ACTIONS, EndpointHealth, EventKind, WebhookEvent, WebhookResult
from .relay import WebhookRelay

__all__ = [
    "DEFAULT_ACTIONS",
    "EndpointHealth",
    "EventKind",
    "WebhookEvent",
    "WebhookRelay",
    "WebhookResult",
]
