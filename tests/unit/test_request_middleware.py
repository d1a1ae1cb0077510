"""
Unit tests for middleware components.
"""

from __future__ import annotations

import pytest
import structlog
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from rental_sync.middleware import RequestIDMiddleware


@pytest.fixture
def app_with_middleware() -> FastAPI:
    """Create FastAPI app with RequestIDMiddleware for testing."""
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)

    @app.get("/test")
    async def test_endpoint(request: Request) -> dict[str, str]:
        """Return the request id from state and from the bound log context."""
        context = structlog.contextvars.get_contextvars()
        return {
            "request_id": request.state.request_id,
            "context_request_id": context.get("request_id", ""),
        }

    return app


@pytest.fixture
def middleware_client(app_with_middleware: FastAPI) -> TestClient:
    return TestClient(app_with_middleware)


@pytest.mark.unit
def test_request_id_added_to_response(middleware_client: TestClient) -> None:
    response = middleware_client.get("/test")

    assert response.status_code == 200
    assert len(response.headers["X-Request-ID"]) == 36  # UUID length


@pytest.mark.unit
def test_request_id_matches_state_and_log_context(middleware_client: TestClient) -> None:
    response = middleware_client.get("/test")

    data = response.json()
    assert data["request_id"] == response.headers["X-Request-ID"]
    assert data["context_request_id"] == data["request_id"]


@pytest.mark.unit
def test_incoming_request_id_is_reused(middleware_client: TestClient) -> None:
    response = middleware_client.get("/test", headers={"X-Request-ID": "upstream-42"})

    assert response.headers["X-Request-ID"] == "upstream-42"
    assert response.json()["context_request_id"] == "upstream-42"


@pytest.mark.unit
def test_request_id_unique_per_request(middleware_client: TestClient) -> None:
    first = middleware_client.get("/test").headers["X-Request-ID"]
    second = middleware_client.get("/test").headers["X-Request-ID"]

    assert first != second
