"""Calendar feed export route consumed by external booking channels."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.exc import InterfaceError, OperationalError

from rental_sync.config import Settings
from rental_sync.dependencies import get_ledger, get_settings
from rental_sync.feeds.export import CONTENT_TYPE, export_calendar, export_filename
from rental_sync.ledger.ledger import ReservationLedger
from rental_sync.routes._property_helpers import normalize_property_or_404

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/ical/{property_code}.ics", response_class=Response)
def export_property_calendar(
    property_code: str,
    settings: Settings = Depends(get_settings),
    ledger: ReservationLedger = Depends(get_ledger),
) -> Response:
    """
    Export a property's committed reservations as an iCalendar feed.

    Only ledger reservations are exported; external blocks are never echoed back
    to the channels they came from.
    """
    code = normalize_property_or_404(settings, property_code)

    try:
        reservations = ledger.read(code)
    except (OperationalError, InterfaceError) as e:
        logger.error("calendar_store_unavailable", property_code=code, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reservation store unavailable",
        ) from e

    body = export_calendar(code, reservations, settings.calendar_uid_domain)
    logger.info("calendar_exported", property_code=code, events=len(reservations))

    return Response(
        content=body,
        media_type=CONTENT_TYPE,
        headers={"Content-Disposition": f"attachment; filename={export_filename(code)}"},
    )
