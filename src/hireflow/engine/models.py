"""Value types returned by the engine client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class EngineConfig:
    """Connection settings for the automation engine.

    Injected into :class:`~hireflow.engine.client.EngineClient`; the client
    never reads global settings itself.
    """

    base_url: str
    api_key: str
    api_key_header: str = "X-Engine-API-Key"
    timeout: float = 10.0
    batch_interval: float = 1.0
    max_retries: int = 2

    @classmethod
    def from_settings(cls, settings: Any) -> EngineConfig:
        return cls(
            base_url=settings.engine_base_url,
            api_key=settings.engine_api_key,
            api_key_header=settings.engine_api_key_header,
            timeout=settings.engine_timeout,
            batch_interval=settings.engine_batch_interval,
            max_retries=settings.engine_max_retries,
        )


@dataclass
class WorkflowSummary:
    """One entry of ``GET /workflows``."""

    id: str
    name: str
    active: bool = False
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> WorkflowSummary:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            active=bool(data.get("active", False)),
            tags=[t["name"] if isinstance(t, dict) else str(t) for t in data.get("tags") or []],
        )


@dataclass
class WebhookResponse:
    """Raw outcome of a webhook call; any HTTP status is a valid response."""

    status: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300
