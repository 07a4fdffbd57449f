"""Webhook event models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Domain events relayed to engine-hosted webhooks."""

    MEETING_BOT = "meeting-bot"
    BUSY_SLOT = "busy-slot"
    EXTEND_MEETING = "extend-meeting"
    CV_PROCESSING = "cv-processing"


DEFAULT_ACTIONS: dict[EventKind, str] = {
    EventKind.MEETING_BOT: "interview_session_started",
    EventKind.BUSY_SLOT: "busy_slot_created",
    EventKind.EXTEND_MEETING: "meeting_extended",
    EventKind.CV_PROCESSING: "sync_cvs",
}


def _utc_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class WebhookEvent(BaseModel):
    """An event about to be sent. Constructed per send, never persisted."""

    kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=_utc_now)
    platform: str

    def to_body(self) -> dict[str, Any]:
        """JSON body: the payload with ``action`` defaulted and stamps applied."""
        body = dict(self.payload)
        body.setdefault("action", DEFAULT_ACTIONS[self.kind])
        body["timestamp"] = self.timestamp
        body["platform"] = self.platform
        return body


class WebhookResult(BaseModel):
    """Outcome of one delivery attempt."""

    delivered: bool
    status: int
    body: str = ""
    error: str | None = None


class EndpointHealth(BaseModel):
    """Reachability of a webhook URL."""

    kind: EventKind
    url: str
    reachable: bool
    status: int | None = None
    latency_ms: float | None = None
    error: str | None = None
