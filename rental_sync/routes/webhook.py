"""Payment confirmation webhook receiver route."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from rental_sync.dependencies import get_ingestion_service, get_notifier
from rental_sync.errors import InvalidSignature, MalformedEvent, UnknownProperty
from rental_sync.services.ingestion import IngestionService, IngestStatus
from rental_sync.services.notifier import Notifier, dispatch_notification

router = APIRouter()
logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"

_HTTP_STATUS = {
    IngestStatus.ACCEPTED: status.HTTP_200_OK,
    IngestStatus.DUPLICATE: status.HTTP_200_OK,
    IngestStatus.IGNORED: status.HTTP_200_OK,
    IngestStatus.PENDING: status.HTTP_202_ACCEPTED,
    IngestStatus.CONFLICT: status.HTTP_409_CONFLICT,
}


@router.post("/webhooks/payments")
async def receive_payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: IngestionService = Depends(get_ingestion_service),
    notifier: Notifier = Depends(get_notifier),
) -> JSONResponse:
    """
    Handle a payment provider webhook delivery.

    The raw body is read untouched because the signature covers the exact bytes.
    Ingestion does blocking store and write-ahead log I/O, so it runs in the
    thread pool.

    Status codes:
        200: accepted, duplicate (already processed) or ignored event type
        202: accepted into the write-ahead log while the store is unreachable
        400: missing or invalid signature
        409: requested dates overlap an existing reservation
        422: payload does not match the booking schema
        500: unexpected failure, the provider will retry

    Example:
        >>> POST /webhooks/payments
        {"status": "accepted", "event_id": "evt_123", "reservation_id": "..."}
    """
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        result = await run_in_threadpool(service.ingest, payload, signature)
    except InvalidSignature as e:
        logger.warning("webhook_signature_rejected", reason=str(e))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid signature"},
        )
    except MalformedEvent as e:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": str(e)},
        )
    except UnknownProperty as e:
        # Configured but not yet seeded in the store
        logger.error("webhook_property_not_seeded", property_code=e.property_code)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": str(e)},
        )
    except Exception as e:
        logger.exception("webhook_processing_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    content = {"status": result.status.value, "event_id": result.event_id}
    if result.reservation is not None and result.status != IngestStatus.CONFLICT:
        content["reservation_id"] = str(result.reservation.id)
    if result.reason:
        content["reason"] = result.reason

    if result.handoff is not None:
        background_tasks.add_task(dispatch_notification, notifier, result.handoff)

    return JSONResponse(status_code=_HTTP_STATUS[result.status], content=content)
