"""Automation engine API client."""

from .client import EngineClient
from .models import EngineConfig, WebhookResponse, WorkflowSummary

__all__ = ["EngineClient", "EngineConfig", "WebhookResponse", "WorkflowSummary"]
