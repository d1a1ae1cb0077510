"""
Availability endpoints: the merged view of ledger reservations and external
calendar blocks, for one property or all of them.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional, TypeVar

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import InterfaceError, OperationalError

from rental_sync.availability.merge import find_blocking, is_range_free
from rental_sync.config import Settings
from rental_sync.dependencies import get_availability_service, get_settings
from rental_sync.routes._property_helpers import normalize_property_or_404, validate_window_or_422
from rental_sync.services.availability import AvailabilityService

router = APIRouter()
logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _query_or_503(query: Callable[[], T], property_code: Optional[str] = None) -> T:
    try:
        return query()
    except (OperationalError, InterfaceError) as e:
        logger.error("availability_store_unavailable", property_code=property_code, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reservation store unavailable",
        ) from e


@router.get("/availability")
def get_all_availability(
    start: Optional[date] = Query(None, description="Window start (inclusive)"),
    end: Optional[date] = Query(None, description="Window end (exclusive)"),
    settings: Settings = Depends(get_settings),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """
    List blocked intervals of every configured property.

    Example:
        >>> GET /availability?start=2025-09-01&end=2025-10-01
        {"properties": {"BLOM": [...], "LIVA": [...]}}
    """
    validate_window_or_422(start, end)

    views = _query_or_503(lambda: service.query_all(settings.property_codes, start, end))
    return {
        "properties": {
            code: [i.as_dict() for i in intervals] for code, intervals in views.items()
        }
    }


@router.get("/availability/{property_code}")
def get_availability(
    property_code: str,
    start: Optional[date] = Query(None, description="Window start (inclusive)"),
    end: Optional[date] = Query(None, description="Window end (exclusive)"),
    settings: Settings = Depends(get_settings),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """
    List blocked intervals for a property, ordered by start date.

    Example:
        >>> GET /availability/BLOM?start=2025-09-01&end=2025-10-01
        {"property": "BLOM", "intervals": [
            {"start": "2025-09-01", "end": "2025-09-04", "origin": "internal", "label": "BLOM reserved"},
            {"start": "2025-09-05", "end": "2025-09-09", "origin": "external", "label": "Blocked (airbnb.com)"}
        ]}
    """
    code = normalize_property_or_404(settings, property_code)
    validate_window_or_422(start, end)

    intervals = _query_or_503(lambda: service.query(code, start, end), code)
    return {"property": code, "intervals": [i.as_dict() for i in intervals]}


@router.get("/availability/{property_code}/check")
def check_availability(
    property_code: str,
    start: date = Query(..., description="First night"),
    end: date = Query(..., description="Departure date (exclusive)"),
    settings: Settings = Depends(get_settings),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """
    Answer whether [start, end) is free for a property.

    Example:
        >>> GET /availability/BLOM/check?start=2025-09-01&end=2025-09-04
        {"property": "BLOM", "start": "2025-09-01", "end": "2025-09-04", "free": true, "conflicts": []}
    """
    code = normalize_property_or_404(settings, property_code)
    validate_window_or_422(start, end)

    intervals = _query_or_503(lambda: service.query(code, start, end), code)
    return {
        "property": code,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "free": is_range_free(intervals, start, end),
        "conflicts": [i.as_dict() for i in find_blocking(intervals, start, end)],
    }
