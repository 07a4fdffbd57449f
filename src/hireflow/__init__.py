"""Hireflow - per-user automation workflow provisioning and webhook relay."""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .engine import EngineClient, EngineConfig
from .errors import HireflowError
from .provisioning import ProvisioningReport, ProvisioningService, WorkflowInstance
from .webhooks import EventKind, WebhookRelay, WebhookResult
from .workflow import TemplateName, TemplateRegistry, WorkflowGraph, get_registry

__all__ = [
    "Settings",
    "get_settings",
    "EngineClient",
    "EngineConfig",
    "HireflowError",
    "ProvisioningReport",
    "ProvisioningService",
    "WorkflowInstance",
    "EventKind",
    "WebhookRelay",
    "WebhookResult",
    "TemplateName",
    "TemplateRegistry",
    "WorkflowGraph",
    "get_registry",
]
