"""
FastAPI dependency injection providers.

Components are built once by ``create_app`` and stored on ``app.state``. These
providers hand them to route handlers. Any of them can be overridden in tests
with ``app.dependency_overrides``; the composite services pick the overrides up.

Testing Example:
    >>> from unittest.mock import Mock
    >>> app = create_app(settings, engine=sqlite_engine)
    >>> app.dependency_overrides[get_aggregator] = lambda: Mock(fetch_all=lambda code: [])
    >>> TestClient(app).get("/availability/BLOM")
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.engine import Engine

from rental_sync.config import Settings
from rental_sync.feeds.aggregator import FeedAggregator
from rental_sync.ledger.ledger import ReservationLedger
from rental_sync.services.availability import AvailabilityService
from rental_sync.services.ingestion import IngestionService
from rental_sync.services.notifier import Notifier


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db_engine(request: Request) -> Engine:
    """
    Provide the primary-store engine.

    Example:
        >>> @router.get("/ready")
        >>> def readiness_check(engine: Engine = Depends(get_db_engine)):
        ...     with engine.connect() as conn:
        ...         ...
    """
    return request.app.state.engine


def get_ledger(request: Request) -> ReservationLedger:
    return request.app.state.ledger


def get_aggregator(request: Request) -> FeedAggregator:
    return request.app.state.aggregator


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_ingestion_service(
    settings: Settings = Depends(get_settings),
    ledger: ReservationLedger = Depends(get_ledger),
) -> IngestionService:
    return IngestionService(settings, ledger)


def get_availability_service(
    ledger: ReservationLedger = Depends(get_ledger),
    aggregator: FeedAggregator = Depends(get_aggregator),
) -> AvailabilityService:
    return AvailabilityService(ledger, aggregator)
