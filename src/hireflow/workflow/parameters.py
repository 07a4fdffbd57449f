"""Typed node parameters keyed by engine node type.

Known node kinds get typed accessors; anything else is carried as an
opaque mapping. ``values`` always holds the full engine mapping so
serialization is lossless.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

WEBHOOK_NODE = "n8n-nodes-base.webhook"
GMAIL_NODE = "n8n-nodes-base.gmail"
GOOGLE_CALENDAR_NODE = "n8n-nodes-base.googleCalendar"


@dataclass
class NodeParameters:
    """Opaque parameters for node kinds without a typed variant."""

    node_type: ClassVar[str | None] = None

    values: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.values)


@dataclass
class WebhookParameters(NodeParameters):
    """Parameters of an engine webhook trigger."""

    node_type: ClassVar[str] = WEBHOOK_NODE

    @property
    def http_method(self) -> str:
        return self.values.get("httpMethod", "GET")

    @property
    def path(self) -> str | None:
        return self.values.get("path")

    @path.setter
    def path(self, value: str) -> None:
        self.values["path"] = value


@dataclass
class GmailParameters(NodeParameters):
    """Parameters of a Gmail node."""

    node_type: ClassVar[str] = GMAIL_NODE

    @property
    def operation(self) -> str | None:
        return self.values.get("operation")

    @property
    def mailbox(self) -> str | None:
        return self.values.get("mailbox")


@dataclass
class GoogleCalendarParameters(NodeParameters):
    """Parameters of a Google Calendar node."""

    node_type: ClassVar[str] = GOOGLE_CALENDAR_NODE

    @property
    def operation(self) -> str | None:
        return self.values.get("operation")

    @property
    def calendar(self) -> str | None:
        return self.values.get("calendar")


PARAMETER_TYPES: dict[str, type[NodeParameters]] = {
    cls.node_type: cls for cls in (WebhookParameters, GmailParameters, GoogleCalendarParameters)
}


def parameters_for(node_type: str, values: dict[str, Any] | None) -> NodeParameters:
    """Build the parameter variant registered for *node_type*."""
    cls = PARAMETER_TYPES.get(node_type, NodeParameters)
    return cls(values=dict(values or {}))
