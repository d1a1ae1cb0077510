"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP rental_sync_ledger_writes_total Reservation ledger write outcomes
        # TYPE rental_sync_ledger_writes_total counter
        rental_sync_ledger_writes_total{property_code="BLOM",status="committed"} 3.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Return all registered metrics in the Prometheus text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
