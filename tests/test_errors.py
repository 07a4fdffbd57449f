"""Tests for the error hierarchy and HTTP client construction."""

import httpx
import pytest

from hireflow.errors import (
    AuthError,
    DanglingConnection,
    EngineError,
    HireflowError,
    InvalidEventPayload,
    NetworkError,
    NotFound,
    RemoteError,
    UnknownTemplate,
    ValidationRejected,
)
from hireflow.http import HTTPClientConfig, create_async_client


class TestErrors:
    """Tests for structured errors."""

    @pytest.mark.parametrize(
        "error_cls",
        [NetworkError, AuthError, NotFound, ValidationRejected, RemoteError],
    )
    def test_engine_errors_are_distinct(self, error_cls):
        others = {NetworkError, AuthError, NotFound, ValidationRejected, RemoteError} - {error_cls}
        error = error_cls("failed", status_code=500)
        assert isinstance(error, EngineError)
        assert not any(isinstance(error, other) for other in others)

    def test_to_dict(self):
        error = NotFound("GET /workflows/x returned HTTP 404", status_code=404, body="{}")
        assert error.to_dict() == {
            "error": "NOT_FOUND",
            "message": "GET /workflows/x returned HTTP 404",
            "details": {"status_code": 404, "body": "{}"},
        }

    def test_details_carry_context(self):
        assert DanglingConnection("x", source="A", target="B").details == {
            "source": "A",
            "target": "B",
        }
        assert UnknownTemplate("x", name="notes").details == {"name": "notes"}
        assert InvalidEventPayload("x", missing=["userId"]).missing == ["userId"]

    def test_base_class(self):
        assert issubclass(InvalidEventPayload, HireflowError)
        assert HireflowError("plain").details == {}


class TestCreateAsyncClient:
    """Tests for create_async_client."""

    @pytest.mark.asyncio
    async def test_applies_config(self):
        config = HTTPClientConfig(
            base_url="http://engine.test/api/v1",
            timeout=4.0,
            headers={"Accept": "application/json"},
        )
        async with create_async_client(config) as client:
            assert str(client.base_url) == "http://engine.test/api/v1/"
            assert client.timeout.read == 4.0
            assert client.timeout.connect == 4.0
            assert client.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_transport_override(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(204))
        async with create_async_client(transport=transport) as client:
            response = await client.get("http://engine.test/ping")
        assert response.status_code == 204
