"""Workflow graph models and the template registry."""

from .graph_models import (
    Connection,
    ConnectionTarget,
    Node,
    WorkflowGraph,
    parse_workflow,
    serialize_workflow,
    validate_workflow,
)
from .parameters import (
    GmailParameters,
    GoogleCalendarParameters,
    NodeParameters,
    WebhookParameters,
    parameters_for,
)
from .registry import (
    TEMPLATE_ORDER,
    TemplateName,
    TemplateRegistry,
    WorkflowTemplate,
    get_registry,
    reset_registry,
)

__all__ = [
    "Connection",
    "ConnectionTarget",
    "Node",
    "WorkflowGraph",
    "parse_workflow",
    "serialize_workflow",
    "validate_workflow",
    "NodeParameters",
    "WebhookParameters",
    "GmailParameters",
    "GoogleCalendarParameters",
    "parameters_for",
    "TEMPLATE_ORDER",
    "TemplateName",
    "TemplateRegistry",
    "WorkflowTemplate",
    "get_registry",
    "reset_registry",
]
