"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hireflow.engine import EngineClient, EngineConfig
from hireflow.ratelimit import CallSequencer
from hireflow.state import SQLiteBackend, WorkflowRecordStore
from hireflow.workflow import TemplateRegistry
from hireflow.workflow.registry import PACKAGED_TEMPLATES_DIR

ENGINE_URL = "http://engine.test/api/v1"
API_KEY = "test-engine-key"


class FakeClock:
    """Deterministic clock and sleep for sequencer tests."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeEngineServer:
    """In-memory stand-in for the engine REST API, served via httpx.MockTransport.

    ``fail_once`` maps a substring of a workflow name to an HTTP status or an
    exception raised on the next create of that workflow. ``lose_response_once``
    holds substrings whose next create is stored but answered with a timeout,
    and ``answer_once`` maps substrings to the response sent after storing.
    """

    def __init__(self):
        self.workflows: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_once: dict[str, int | Exception] = {}
        self.lose_response_once: set[str] = set()
        self.answer_once: dict[str, httpx.Response] = {}
        self._next_id = 1

    @property
    def creates(self) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == "POST" and r.url.path.endswith("/workflows")
        ]

    @property
    def lists(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET" and r.url.path.endswith("/workflows")]

    def add_workflow(self, body: dict) -> str:
        workflow_id = f"wf-{self._next_id}"
        self._next_id += 1
        self.workflows[workflow_id] = {**body, "id": workflow_id, "active": False}
        return workflow_id

    async def handler(self, request: httpx.Request) -> httpx.Response:
        # Yield so concurrent callers interleave like real I/O
        await asyncio.sleep(0)
        self.requests.append(request)
        if request.headers.get("X-Engine-API-Key") != API_KEY:
            return httpx.Response(401, json={"message": "unauthorized"})

        path = request.url.path.removeprefix("/api/v1")
        if path == "/workflows" and request.method == "POST":
            return self._create(request)
        if path == "/workflows" and request.method == "GET":
            name = request.url.params.get("name")
            data = [
                {"id": wid, "name": wf["name"], "active": wf["active"], "tags": []}
                for wid, wf in self.workflows.items()
                if name is None or wf["name"] == name
            ]
            return httpx.Response(200, json={"data": data, "nextCursor": None})

        workflow_id = path.removeprefix("/workflows/")
        workflow = self.workflows.get(workflow_id)
        if workflow is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if request.method == "PATCH":
            workflow.update(json.loads(request.content))
        return httpx.Response(200, json=workflow)

    def _create(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        for marker in list(self.fail_once):
            if marker in body["name"]:
                failure = self.fail_once.pop(marker)
                if isinstance(failure, Exception):
                    raise failure
                return httpx.Response(failure, json={"message": f"rejected {marker}"})
        workflow_id = self.add_workflow(body)
        for marker in list(self.lose_response_once):
            if marker in body["name"]:
                self.lose_response_once.discard(marker)
                raise httpx.ReadTimeout("timed out", request=request)
        for marker in list(self.answer_once):
            if marker in body["name"]:
                return self.answer_once.pop(marker)
        return httpx.Response(200, json=self.workflows[workflow_id])


@pytest.fixture
def backend(tmp_path):
    """Create a temporary SQLite backend."""
    backend = SQLiteBackend(db_path=str(tmp_path / "state.db"))
    yield backend
    backend.close()


@pytest.fixture
def store(backend):
    return WorkflowRecordStore(backend=backend)


@pytest.fixture
def registry():
    return TemplateRegistry.from_directory(PACKAGED_TEMPLATES_DIR)


@pytest.fixture
def engine_config():
    return EngineConfig(base_url=ENGINE_URL, api_key=API_KEY, batch_interval=0.0)


@pytest.fixture
def server():
    return FakeEngineServer()


@pytest_asyncio.fixture
async def engine(engine_config, server):
    """EngineClient wired to the fake engine server."""
    async with EngineClient(
        engine_config,
        transport=httpx.MockTransport(server.handler),
        sequencer=CallSequencer(min_interval=0.0, name="test"),
    ) as client:
        yield client
