"""
Health and readiness check endpoints for container probes.

Readiness also reports how many reservations are waiting in the write-ahead
log, so an operator can see a degraded ledger at a glance.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from rental_sync.db.engine import check_engine_health
from rental_sync.dependencies import get_db_engine, get_ledger
from rental_sync.ledger.ledger import ReservationLedger

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check() -> JSONResponse:
    """
    Liveness probe endpoint.

    Example:
        >>> GET /health
        {"status": "ok"}
    """
    return JSONResponse(content={"status": "ok"})


@router.get("/ready")
def readiness_check(
    engine: Engine = Depends(get_db_engine),
    ledger: ReservationLedger = Depends(get_ledger),
) -> JSONResponse:
    """
    Readiness probe endpoint.

    Returns 503 if the primary store is not accessible.

    Example:
        >>> GET /ready
        {"status": "ready", "checks": {"database": "ok", "pending_reservations": 0}}
    """
    checks: dict[str, Any] = {"pending_reservations": ledger.pending_count()}

    if check_engine_health(engine):
        checks["database"] = "ok"
        return JSONResponse(content={"status": "ready", "checks": checks})

    logger.error(
        "readiness_check_failed",
        reason="database_not_accessible",
        pending_reservations=checks["pending_reservations"],
    )
    checks["database"] = "failed"
    return JSONResponse(status_code=503, content={"status": "not ready", "checks": checks})
