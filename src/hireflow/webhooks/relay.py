"""Webhook relay.

Fires domain events at the engine-hosted webhook configured for their kind.
Each send is independent and best-effort: an HTTP failure is reported in the
result, and retrying is up to the caller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from hireflow.engine import EngineClient
from hireflow.errors import InvalidEventPayload, NetworkError, WebhookNotConfigured
from hireflow.utils import require_fields

from .models import EndpointHealth, EventKind, WebhookEvent, WebhookResult

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("userId",)

# HEAD probes only check reachability
_HEALTH_CHECK_TIMEOUT = 5.0


class WebhookRelay:
    """Sends :class:`WebhookEvent` bodies to their configured URLs.

    Usage:
        relay = WebhookRelay.from_settings(engine, get_settings())
        result = await relay.send("busy-slot", {"userId": "u1", "slotId": "s1"})
        if not result.delivered:
            ...
    """

    def __init__(
        self,
        engine: EngineClient,
        urls: Mapping[EventKind | str, str],
        platform: str = "ideofuzion",
        timeout: float = 10.0,
        user_agent: str = "HiringPlatform/1.0",
    ):
        """Initialize the relay.

        Args:
            engine: Engine client whose HTTP transport carries the calls
            urls: Webhook URL per event kind; kinds without a URL cannot be sent
            platform: Source-platform tag stamped on every event
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header for webhook calls
        """
        self.engine = engine
        self.urls = {EventKind(kind): url for kind, url in urls.items() if url}
        self.platform = platform
        self.timeout = timeout
        self.user_agent = user_agent

    @classmethod
    def from_settings(cls, engine: EngineClient, settings: Any) -> WebhookRelay:
        return cls(
            engine,
            urls=settings.webhook_urls(),
            platform=settings.webhook_platform,
            timeout=settings.webhook_timeout,
            user_agent=settings.webhook_user_agent,
        )

    def url_for(self, kind: EventKind | str) -> str:
        """Resolve the webhook URL of an event kind.

        Raises:
            WebhookNotConfigured: No URL is configured for *kind*
        """
        try:
            key = EventKind(kind)
        except ValueError:
            raise WebhookNotConfigured(f"Unknown event kind: {kind!r}", {"kind": str(kind)})
        url = self.urls.get(key)
        if not url:
            raise WebhookNotConfigured(
                f"No webhook URL configured for {key.value}", {"kind": key.value}
            )
        return url

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "User-Agent": self.user_agent}

    async def send(self, kind: EventKind | str, payload: Mapping[str, Any]) -> WebhookResult:
        """Send one event.

        ``timestamp`` and ``platform`` are always stamped; ``action`` defaults
        to the kind's standard action.

        Raises:
            WebhookNotConfigured: No URL is configured for *kind*
            InvalidEventPayload: ``userId`` is missing
            NetworkError: Transport failure or timeout
        """
        url = self.url_for(kind)
        missing = require_fields(dict(payload), REQUIRED_FIELDS)
        if missing:
            raise InvalidEventPayload(
                f"{EventKind(kind).value} event is missing {', '.join(missing)}", missing=missing
            )

        event = WebhookEvent(kind=kind, payload=dict(payload), platform=self.platform)
        start = time.monotonic()
        response = await self.engine.trigger_webhook(
            url, event.to_body(), headers=self._headers(), timeout=self.timeout
        )
        duration_ms = (time.monotonic() - start) * 1000

        if response.ok:
            logger.info(
                "Delivered %s event for user %s (HTTP %d)",
                event.kind.value,
                payload["userId"],
                response.status,
                extra={
                    "event_kind": event.kind.value,
                    "user_id": payload["userId"],
                    "status_code": response.status,
                    "duration_ms": round(duration_ms, 1),
                },
            )
            return WebhookResult(delivered=True, status=response.status, body=response.body)

        logger.warning(
            "Webhook %s returned HTTP %d: %s",
            event.kind.value,
            response.status,
            response.body,
            extra={"event_kind": event.kind.value, "status_code": response.status},
        )
        return WebhookResult(
            delivered=False,
            status=response.status,
            body=response.body,
            error=f"HTTP {response.status}",
        )

    async def check_endpoint(self, kind: EventKind | str) -> EndpointHealth:
        """Probe a webhook URL with ``HEAD``.

        Any HTTP response counts as reachable; the engine answers ``HEAD``
        on POST-only webhooks with 404 or 405.

        Raises:
            WebhookNotConfigured: No URL is configured for *kind*
        """
        url = self.url_for(kind)
        key = EventKind(kind)
        start = time.monotonic()
        try:
            response = await self.engine.trigger_webhook(
                url,
                method="HEAD",
                headers={"User-Agent": self.user_agent},
                timeout=min(self.timeout, _HEALTH_CHECK_TIMEOUT),
            )
        except NetworkError as e:
            logger.warning("Webhook %s unreachable: %s", key.value, e)
            return EndpointHealth(kind=key, url=url, reachable=False, error=e.message)

        return EndpointHealth(
            kind=key,
            url=url,
            reachable=True,
            status=response.status,
            latency_ms=round((time.monotonic() - start) * 1000, 1),
        )

    async def check_all(self) -> list[EndpointHealth]:
        """Probe every configured webhook."""
        return [await self.check_endpoint(kind) for kind in EventKind if kind in self.urls]
