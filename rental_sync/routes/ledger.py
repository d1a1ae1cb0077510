"""Operational endpoint for replaying the write-ahead log."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from rental_sync.dependencies import get_ledger
from rental_sync.ledger.ledger import ReservationLedger

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/ledger/reconcile")
def reconcile_ledger(ledger: ReservationLedger = Depends(get_ledger)) -> JSONResponse:
    """
    Replay reservations parked in the write-ahead log into the primary store.

    Returns 200 with the report when the store was reachable, 503 when entries
    had to be kept because it still is not.

    Example:
        >>> POST /ledger/reconcile
        {"committed": 2, "duplicate": 0, "rejected": 0, "remaining": 0, "store_available": true}
    """
    report = ledger.reconcile()
    code = status.HTTP_200_OK if report.store_available else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=report.as_dict())
