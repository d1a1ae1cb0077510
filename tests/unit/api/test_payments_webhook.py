"""Unit tests for the payment webhook endpoint."""

from __future__ import annotations

from typing import Callable
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from rental_sync.config import Settings
from rental_sync.main import create_app

WEBHOOK_PATH = "/webhooks/payments"


def _post(client: TestClient, payload: bytes, signature: str | None) -> Response:
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post(WEBHOOK_PATH, content=payload, headers=headers)


@pytest.mark.unit
def test_valid_event_returns_200_and_notifies(
    client: TestClient,
    notifier: Mock,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event(event_id="evt_1")

    response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "accepted"
    assert body["event_id"] == "evt_1"
    assert body["reservation_id"]
    notifier.notify.assert_called_once()
    handoff = notifier.notify.call_args.args[0]
    assert handoff.event_id == "evt_1"
    assert handoff.contact_email == "guest@example.com"


@pytest.mark.unit
def test_duplicate_delivery_returns_200_without_second_notification(
    client: TestClient,
    notifier: Mock,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event(event_id="evt_1")

    first = _post(client, payload, sign_payload(payload))
    response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "duplicate"
    # Only the first delivery's reservation exists
    assert "reservation_id" not in body
    assert first.json()["reservation_id"]
    assert notifier.notify.call_count == 1


@pytest.mark.unit
def test_overlap_returns_409(
    client: TestClient,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    first = checkout_event(event_id="evt_a", start_date="2025-09-10", nights="2")
    second = checkout_event(event_id="evt_b", start_date="2025-09-11", nights="3")

    _post(client, first, sign_payload(first))
    response = _post(client, second, sign_payload(second))

    assert response.status_code == 409
    assert response.json()["status"] == "conflict"
    assert "reservation_id" not in response.json()


@pytest.mark.unit
def test_invalid_signature_returns_400(
    client: TestClient,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event()

    response = _post(client, payload, sign_payload(payload, secret="whsec_wrong"))

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}


@pytest.mark.unit
def test_missing_signature_returns_400(
    client: TestClient, checkout_event: Callable[..., bytes]
) -> None:
    response = _post(client, checkout_event(), None)

    assert response.status_code == 400


@pytest.mark.unit
def test_malformed_event_returns_422(
    client: TestClient,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event(nights="zero")

    response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 422
    assert "metadata.nuits" in response.json()["error"]


@pytest.mark.unit
def test_stay_past_last_supported_date_returns_422(
    client: TestClient,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event(start_date="9999-12-31", nights="1")

    response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 422


@pytest.mark.unit
def test_non_json_body_returns_422(client: TestClient, sign_payload: Callable[..., str]) -> None:
    payload = b"definitely not json"

    response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 422


@pytest.mark.unit
def test_ignored_event_type_returns_200(
    client: TestClient,
    notifier: Mock,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event(event_type="charge.refunded")

    response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    notifier.notify.assert_not_called()


@pytest.mark.unit
def test_store_down_returns_202_pending(
    settings: Settings,
    unreachable_engine: Engine,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    notifier = Mock()
    app = create_app(settings, engine=unreachable_engine, notifier=notifier)
    payload = checkout_event(event_id="evt_1")

    with TestClient(app) as client:
        response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 202
    assert response.json()["status"] == "pending"
    handoff = notifier.notify.call_args.args[0]
    assert handoff.pending is True


@pytest.mark.unit
def test_store_down_at_startup_then_recovered_accepts_webhooks(
    settings: Settings,
    unseeded_engine: Engine,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    """Startup seeding failed; the first webhook for a configured property still lands."""
    app = create_app(settings, engine=unseeded_engine, notifier=Mock())
    payload = checkout_event(event_id="evt_1", property_code="LIVA")
    outage = OperationalError("SELECT", {}, Exception("connection refused"))

    with patch("rental_sync.main.ensure_properties", side_effect=outage):
        with TestClient(app) as client:
            response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
    assert [r.event_id for r in app.state.ledger.read("LIVA")] == ["evt_1"]


@pytest.mark.unit
def test_notifier_failure_does_not_fail_request(
    client: TestClient,
    notifier: Mock,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    notifier.notify.side_effect = RuntimeError("smtp down")
    payload = checkout_event(event_id="evt_1")

    response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert response.json()["status"] == "accepted"


@pytest.mark.unit
def test_unexpected_error_returns_500(
    client: TestClient,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event()

    with patch(
        "rental_sync.services.ingestion.IngestionService.ingest",
        side_effect=RuntimeError("boom"),
    ):
        response = _post(client, payload, sign_payload(payload))

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_ingestion_runs_off_the_event_loop(
    app: FastAPI,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    payload = checkout_event(event_id="evt_pool")
    transport = ASGITransport(app=app)

    with patch(
        "rental_sync.routes.webhook.run_in_threadpool", wraps=run_in_threadpool
    ) as pooled:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post(
                WEBHOOK_PATH,
                content=payload,
                headers={"Stripe-Signature": sign_payload(payload)},
            )

    assert response.status_code == 200
    pooled.assert_called_once()
    assert pooled.call_args.args[1] == payload


@pytest.mark.asyncio
async def test_webhook_over_asgi_transport(
    app: FastAPI,
    checkout_event: Callable[..., bytes],
    sign_payload: Callable[..., str],
) -> None:
    """The raw body reaches signature verification byte for byte."""
    payload = checkout_event(event_id="evt_async")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            WEBHOOK_PATH,
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload)},
        )

    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
