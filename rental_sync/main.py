"""
FastAPI application factory.

Run with:
    uvicorn rental_sync.main:create_app --factory
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError

from rental_sync.config import Settings, load_settings
from rental_sync.db.engine import create_db_engine
from rental_sync.db.writers.properties import ensure_properties
from rental_sync.feeds.aggregator import FeedAggregator
from rental_sync.ledger.ledger import ReservationLedger
from rental_sync.ledger.reconciler import PeriodicReconciler
from rental_sync.ledger.wal import WriteAheadLog
from rental_sync.logging_config import setup_logging
from rental_sync.middleware import RequestIDMiddleware
from rental_sync.routes.availability import router as availability_router
from rental_sync.routes.calendar import router as calendar_router
from rental_sync.routes.health import router as health_router
from rental_sync.routes.ledger import router as ledger_router
from rental_sync.routes.metrics import router as metrics_router
from rental_sync.routes.webhook import router as webhook_router
from rental_sync.services.notifier import LoggingNotifier, Notifier

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """
    Build the application and its components.

    Args:
        settings: Configuration; read from the environment when omitted
        engine: Primary-store engine; built from ``settings.database_url`` when omitted
        notifier: Booking confirmation notifier; logs handoffs when omitted

    Returns:
        FastAPI: The configured application
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    engine = engine or create_db_engine(settings.database_url)
    ledger = ReservationLedger(
        engine, WriteAheadLog(settings.wal_path), settings.property_codes
    )

    app = FastAPI(
        title="Rental Sync API",
        description="Payment-driven reservation ledger and calendar synchronisation",
        version="1.0.0",
        debug=settings.debug,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.ledger = ledger
    app.state.aggregator = FeedAggregator(
        settings.feed_sources,
        timeout=settings.feed_timeout_seconds,
        max_workers=settings.feed_max_workers,
    )
    app.state.notifier = notifier or LoggingNotifier()
    app.state.reconciler = None

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins) if "*" not in settings.allowed_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Register routers
    app.include_router(health_router, tags=["Health"])
    app.include_router(metrics_router, tags=["Metrics"])
    app.include_router(webhook_router, tags=["Webhooks"])
    app.include_router(availability_router, tags=["Availability"])
    app.include_router(calendar_router, tags=["Calendar"])
    app.include_router(ledger_router, tags=["Ledger"])

    @app.on_event("startup")
    def startup_event() -> None:
        """Seed the property set and start the optional reconciler."""
        logger.info(
            "application_starting",
            properties=list(settings.property_codes),
            feeds=sum(len(urls) for urls in settings.feed_sources.values()),
        )

        try:
            ensure_properties(engine, settings.property_codes)
        except (OperationalError, InterfaceError) as e:
            # Writes degrade to the write-ahead log until the store is back.
            logger.error("property_seed_failed", error=str(e))

        pending = ledger.pending_count()
        if pending:
            logger.warning("wal_pending_at_startup", pending=pending)

        if settings.reconcile_interval_seconds > 0:
            app.state.reconciler = PeriodicReconciler(ledger, settings.reconcile_interval_seconds)
            app.state.reconciler.start()

        logger.info("application_started")

    @app.on_event("shutdown")
    def shutdown_event() -> None:
        if app.state.reconciler is not None:
            app.state.reconciler.stop()
            app.state.reconciler = None
        logger.info("application_stopped")

    return app
