"""
Shared fixtures.

Unit tests run against an in-memory SQLite database. The ``rentals`` schema is
mapped away with ``schema_translate_map`` and a StaticPool keeps the single
in-memory connection alive across threads (FastAPI runs sync routes in a
thread pool).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from pathlib import Path
from typing import Any, Callable, Generator, Optional
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from rental_sync.config import SCHEMA, Settings
from rental_sync.db.writers.properties import ensure_properties
from rental_sync.dependencies import get_aggregator
from rental_sync.ledger.ledger import ReservationLedger
from rental_sync.ledger.wal import WriteAheadLog
from rental_sync.main import create_app
from rental_sync.models.base import Base
from rental_sync.models.properties import Property  # noqa: F401
from rental_sync.models.reservations import Reservation  # noqa: F401
from rental_sync.models.webhook_events import WebhookEvent  # noqa: F401

WEBHOOK_SECRET = "whsec_test_secret"
PROPERTY_CODES = ("BLOM", "LIVA")
LIVA_FEEDS = (
    "https://www.airbnb.fr/calendar/ical/41095534.ics?s=abc",
    "https://admin.booking.com/hotel/hoteladmin/ical.html?t=def",
)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url="sqlite://",
        webhook_secret=WEBHOOK_SECRET,
        feed_sources={"BLOM": (), "LIVA": LIVA_FEEDS},
        property_codes=PROPERTY_CODES,
        log_level="INFO",
        feed_timeout_seconds=0.5,
        wal_path=tmp_path / "ledger-wal.jsonl",
        calendar_uid_domain="test.rental-sync",
    )


def _memory_engine() -> Engine:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ).execution_options(schema_translate_map={SCHEMA: None})
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def sqlite_engine() -> Generator[Engine, None, None]:
    """In-memory primary store with the schema created and properties seeded."""
    engine = _memory_engine()
    ensure_properties(engine, PROPERTY_CODES)
    yield engine
    engine.dispose()


@pytest.fixture
def unseeded_engine() -> Generator[Engine, None, None]:
    """A store that came back after a startup outage: schema present, no properties."""
    engine = _memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def unreachable_engine(tmp_path: Path) -> Engine:
    """An engine whose database file can never be opened (OperationalError on connect)."""
    missing = tmp_path / "missing-dir" / "ledger.db"
    return create_engine(f"sqlite:///{missing}").execution_options(
        schema_translate_map={SCHEMA: None}
    )


@pytest.fixture
def wal(settings: Settings) -> WriteAheadLog:
    return WriteAheadLog(settings.wal_path)


@pytest.fixture
def ledger(sqlite_engine: Engine, wal: WriteAheadLog) -> ReservationLedger:
    return ReservationLedger(sqlite_engine, wal, PROPERTY_CODES)


@pytest.fixture
def degraded_ledger(unreachable_engine: Engine, wal: WriteAheadLog) -> ReservationLedger:
    return ReservationLedger(unreachable_engine, wal, PROPERTY_CODES)


@pytest.fixture
def sign_payload() -> Callable[..., str]:
    """Build a Stripe-Signature header for a raw payload."""

    def _sign(
        payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None
    ) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
        digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture
def checkout_event() -> Callable[..., bytes]:
    """Build a serialized ``checkout.session.completed`` event."""

    def _build(
        event_id: str = "evt_1",
        property_code: str = "BLOM",
        start_date: str = "2025-09-10",
        nights: Any = "2",
        email: Optional[str] = "guest@example.com",
        event_type: str = "checkout.session.completed",
        payment_status: str = "paid",
        **metadata_overrides: Any,
    ) -> bytes:
        metadata: dict[str, Any] = {
            "logement": property_code,
            "date": start_date,
            "nuits": nights,
        }
        if email is not None:
            metadata["email"] = email
        metadata.update(metadata_overrides)
        event = {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "livemode": False,
            "data": {
                "object": {
                    "id": f"cs_test_{event_id}",
                    "object": "checkout.session",
                    "amount_total": 24000,
                    "currency": "EUR",
                    "payment_status": payment_status,
                    "metadata": metadata,
                }
            },
        }
        return json.dumps(event).encode("utf-8")

    return _build


@pytest.fixture
def stub_aggregator() -> Mock:
    aggregator = Mock()
    aggregator.fetch_all.return_value = []
    aggregator.fetch_many.return_value = {}
    return aggregator


@pytest.fixture
def notifier() -> Mock:
    return Mock()


@pytest.fixture
def app(
    settings: Settings, sqlite_engine: Engine, notifier: Mock, stub_aggregator: Mock
) -> FastAPI:
    app = create_app(settings, engine=sqlite_engine, notifier=notifier)
    app.dependency_overrides[get_aggregator] = lambda: stub_aggregator
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """FastAPI test client with startup and shutdown hooks run."""
    with TestClient(app) as test_client:
        yield test_client
