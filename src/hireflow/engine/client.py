"""Automation engine API client.

Typed async wrapper around the engine's workflow endpoints and webhook
triggers. Responses are validated at this boundary: callers only ever see
:class:`~hireflow.workflow.WorkflowGraph` and the value types in
:mod:`hireflow.engine.models`, never raw JSON.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable
from typing import Any

import httpx

from hireflow.errors import (
    AuthError,
    EngineError,
    NetworkError,
    NotFound,
    RemoteError,
    ValidationRejected,
)
from hireflow.http import HTTPClientConfig, create_async_client
from hireflow.ratelimit import CallSequencer
from hireflow.workflow.graph_models import WorkflowGraph, parse_workflow, validate_workflow

from .models import EngineConfig, WebhookResponse, WorkflowSummary

logger = logging.getLogger(__name__)

# Response bodies kept on errors and webhook results
_MAX_BODY_CHARS = 1000


def _error_for_status(status: int) -> type[EngineError]:
    if status in (401, 403):
        return AuthError
    if status == 404:
        return NotFound
    if status in (400, 422):
        return ValidationRejected
    return RemoteError


def _decode(method: str, path: str, response: httpx.Response) -> Any:
    """JSON body of a 2xx response, or None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise RemoteError(
            f"{method} {path} returned a non-JSON body",
            status_code=response.status_code,
            body=response.text[:_MAX_BODY_CHARS],
        ) from e


class EngineClient:
    """Client for the automation engine REST API.

    Every engine request carries the configured API key header. Single
    calls are not throttled; batch helpers (:meth:`fetch_workflows`,
    paginated :meth:`list_workflows`) go through a :class:`CallSequencer`.

    Usage:
        async with EngineClient(EngineConfig(base_url=..., api_key=...)) as engine:
            graph = await engine.fetch_workflow("wf-123")
    """

    def __init__(
        self,
        config: EngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        sequencer: CallSequencer | None = None,
    ):
        """Initialize the client.

        Args:
            config: Engine connection settings
            transport: Optional httpx transport override (tests)
            sequencer: Spacing for batched calls (defaults to ``config.batch_interval``)
        """
        self.config = config
        self.sequencer = sequencer or CallSequencer(
            min_interval=config.batch_interval, name="engine"
        )
        self._client = create_async_client(
            HTTPClientConfig(
                base_url=config.base_url.rstrip("/"),
                timeout=config.timeout,
                max_retries=config.max_retries,
                headers={"Accept": "application/json"},
            ),
            transport=transport,
        )

    async def __aenter__(self) -> EngineClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        return {self.config.api_key_header: self.config.api_key}

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a request, mapping transport failures to NetworkError."""
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if json_body is not None:
            kwargs["json"] = json_body
        if timeout is not None:
            kwargs["timeout"] = timeout

        start = time.monotonic()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {url} timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        logger.debug(
            "%s %s -> %d (%.0f ms)",
            method,
            url,
            response.status_code,
            (time.monotonic() - start) * 1000,
        )
        return response

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Authenticated engine request returning decoded JSON."""
        response = await self._checked(method, path, json_body=json_body, params=params)
        return _decode(method, path, response)

    async def _checked(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Authenticated engine request; non-2xx statuses raise."""
        response = await self._send(
            method, path, json_body=json_body, params=params, headers=self._auth_headers()
        )

        if not response.is_success:
            error_cls = _error_for_status(response.status_code)
            raise error_cls(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text[:_MAX_BODY_CHARS],
            )
        return response

    async def fetch_workflow(self, remote_id: str) -> WorkflowGraph:
        """Fetch and validate a workflow definition.

        Raises:
            NotFound: No workflow with this id
            AuthError: API key rejected
            NetworkError: Transport failure or timeout
            RemoteError: Any other failure status
            MalformedGraph: The engine returned an invalid graph
        """
        data = await self._request("GET", f"/workflows/{remote_id}")
        return parse_workflow(data)

    async def fetch_workflows(self, remote_ids: Iterable[str]) -> list[WorkflowGraph]:
        """Fetch several workflows, spaced by the call sequencer."""
        graphs = []
        for remote_id in remote_ids:
            await self.sequencer.wait()
            graphs.append(await self.fetch_workflow(remote_id))
        return graphs

    async def create_workflow(self, graph: WorkflowGraph) -> str:
        """Create a workflow on the engine.

        The graph is validated locally first; an invalid graph is never sent.

        Returns:
            The remote workflow id

        Raises:
            MalformedGraph: The graph failed local validation
            ValidationRejected: The engine rejected the definition
            AuthError: API key rejected
            NetworkError: Transport failure or timeout (outcome unknown)
            RemoteError: Any other failure status, or no id in the response
        """
        validate_workflow(graph)
        payload = graph.to_create_payload()
        try:
            response = await self._checked("POST", "/workflows", json_body=payload)
        except ValidationRejected as e:
            logger.error(
                "Engine rejected workflow %r (HTTP %s): %s\nPayload: %s",
                graph.name,
                e.status_code,
                e.body,
                json.dumps(payload, indent=2),
            )
            raise

        # A 2xx without a readable id may still have created the workflow
        data = _decode("POST", "/workflows", response)
        if not isinstance(data, dict) or not data.get("id"):
            raise RemoteError(
                f"Engine returned no workflow id for {graph.name!r}",
                status_code=response.status_code,
                body=response.text[:_MAX_BODY_CHARS],
            )
        remote_id = str(data["id"])
        logger.info("Created workflow %r with id %s", graph.name, remote_id)
        return remote_id

    async def list_workflows(
        self,
        name: str | None = None,
        active: bool | None = None,
        tags: Iterable[str] | None = None,
        limit: int | None = None,
    ) -> list[WorkflowSummary]:
        """List workflows matching the filters, following pagination.

        Pages after the first are spaced by the call sequencer.
        """
        params: dict[str, Any] = {}
        if name is not None:
            params["name"] = name
        if active is not None:
            params["active"] = "true" if active else "false"
        if tags:
            params["tags"] = ",".join(tags)
        if limit is not None:
            params["limit"] = limit

        summaries: list[WorkflowSummary] = []
        cursor = None
        while True:
            if cursor:
                await self.sequencer.wait()
                params["cursor"] = cursor
            data = await self._request("GET", "/workflows", params=params)
            if isinstance(data, dict):
                items = data.get("data") or []
                cursor = data.get("nextCursor")
            else:
                items = data or []
                cursor = None
            summaries.extend(WorkflowSummary.from_dict(item) for item in items)
            if not cursor:
                break

        # Some engine versions ignore the name filter
        if name is not None:
            summaries = [s for s in summaries if s.name == name]
        return summaries

    async def set_workflow_active(self, remote_id: str, active: bool) -> None:
        """Activate or deactivate a workflow."""
        await self._request("PATCH", f"/workflows/{remote_id}", json_body={"active": active})
        logger.info("Set workflow %s active=%s", remote_id, active)

    async def trigger_webhook(
        self,
        url: str,
        payload: dict[str, Any] | None = None,
        *,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> WebhookResponse:
        """Call an engine-hosted webhook.

        Never raises on HTTP status; the caller inspects ``status``. The
        engine API key is not sent to webhooks.

        Raises:
            NetworkError: Transport failure or timeout
        """
        response = await self._send(
            method, url, json_body=payload, headers=headers, timeout=timeout
        )
        return WebhookResponse(status=response.status_code, body=response.text[:_MAX_BODY_CHARS])
