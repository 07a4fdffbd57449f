"""Hireflow Error Hierarchy.

Structured exception types for workflow provisioning and webhook relay.
"""

from __future__ import annotations


class HireflowError(Exception):
    """Base error for all Hireflow exceptions."""

    code = "HIREFLOW_ERROR"

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Graph Errors
class GraphError(HireflowError):
    """Base error for workflow graph problems."""

    code = "GRAPH_ERROR"


class MalformedGraph(GraphError):
    """Workflow graph could not be parsed."""

    code = "MALFORMED_GRAPH"


class EmptyGraph(MalformedGraph):
    """Workflow graph has no nodes."""

    code = "EMPTY_GRAPH"


class DuplicateNodeId(MalformedGraph):
    """Two nodes share an id or a name."""

    code = "DUPLICATE_NODE_ID"

    def __init__(self, message: str, node: str = None):
        super().__init__(message, {"node": node})
        self.node = node


class DanglingConnection(MalformedGraph):
    """A connection references a node that does not exist."""

    code = "DANGLING_CONNECTION"

    def __init__(self, message: str, source: str = None, target: str = None):
        super().__init__(message, {"source": source, "target": target})
        self.source = source
        self.target = target


# Engine Errors
class EngineError(HireflowError):
    """Base error for automation engine calls."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, status_code: int = None, body: str = None):
        super().__init__(message, {"status_code": status_code, "body": body})
        self.status_code = status_code
        self.body = body


class NetworkError(EngineError):
    """Transport failure (timeout, connection refused). Retryable by the caller."""

    code = "NETWORK_ERROR"


class AuthError(EngineError):
    """Engine rejected the API credential (HTTP 401/403)."""

    code = "AUTH_ERROR"


class NotFound(EngineError):
    """Remote workflow does not exist (HTTP 404)."""

    code = "NOT_FOUND"


class ValidationRejected(EngineError):
    """Engine rejected the submitted workflow (HTTP 400/422)."""

    code = "VALIDATION_REJECTED"


class RemoteError(EngineError):
    """Any other non-2xx engine response."""

    code = "REMOTE_ERROR"


# Template Errors
class TemplateError(HireflowError):
    """Base error for template registry failures."""

    code = "TEMPLATE_ERROR"


class UnknownTemplate(TemplateError):
    """No template registered under the requested name."""

    code = "UNKNOWN_TEMPLATE"

    def __init__(self, message: str, name: str = None):
        super().__init__(message, {"name": name})
        self.name = name


# Provisioning Errors
class ProvisioningError(HireflowError):
    """Provisioning state could not be read or written."""

    code = "PROVISIONING_ERROR"


# Webhook Errors
class WebhookError(HireflowError):
    """Base error for webhook relay failures."""

    code = "WEBHOOK_ERROR"


class WebhookNotConfigured(WebhookError):
    """No target URL is configured for the event kind."""

    code = "WEBHOOK_NOT_CONFIGURED"


class InvalidEventPayload(WebhookError):
    """Event payload is missing required fields."""

    code = "INVALID_EVENT_PAYLOAD"

    def __init__(self, message: str, missing: list[str] = None):
        super().__init__(message, {"missing": missing or []})
        self.missing = missing or []
