"""
Payment confirmation ingestion.

Pipeline: verify signature -> validate against the canonical schema -> write
the reservation (the ledger enforces idempotency and overlap) -> return a
handoff for the notifier. Signature and schema failures are resolved here and
never reach the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import stripe
import structlog
from pydantic import ValidationError

from rental_sync.config import Settings
from rental_sync.errors import InvalidSignature, MalformedEvent
from rental_sync.ledger.ledger import ReservationLedger
from rental_sync.ledger.records import ReservationRecord, WriteResult, WriteStatus
from rental_sync.metrics import webhook_events
from rental_sync.schemas.events import CHECKOUT_COMPLETED, CheckoutSession, ProviderEvent
from rental_sync.services.notifier import NotificationHandoff

logger = structlog.get_logger(__name__)


class IngestStatus(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    PENDING = "pending"
    CONFLICT = "conflict"
    IGNORED = "ignored"


_STATUS_BY_WRITE = {
    WriteStatus.COMMITTED: IngestStatus.ACCEPTED,
    WriteStatus.DUPLICATE: IngestStatus.DUPLICATE,
    WriteStatus.DEGRADED: IngestStatus.PENDING,
    WriteStatus.CONFLICT: IngestStatus.CONFLICT,
}


@dataclass(frozen=True)
class IngestResult:
    status: IngestStatus
    event_id: str
    reservation: Optional[ReservationRecord] = None
    handoff: Optional[NotificationHandoff] = None
    reason: Optional[str] = None


def verify_signature(
    payload: bytes, signature_header: Optional[str], secret: str, tolerance: int
) -> None:
    """
    Verify the provider's signature header over the raw body.

    Raises:
        InvalidSignature: If the header is missing, stale or does not match
    """
    if not signature_header:
        raise InvalidSignature("Missing signature header")
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature_header, secret, tolerance
        )
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature("Signature verification failed") from e
    except UnicodeDecodeError as e:
        raise InvalidSignature("Payload is not UTF-8") from e


def parse_event(payload: bytes) -> ProviderEvent:
    """
    Parse the provider envelope.

    Raises:
        MalformedEvent: If the body is not a valid event envelope
    """
    try:
        return ProviderEvent.model_validate_json(payload)
    except ValidationError as e:
        raise MalformedEvent(f"Invalid event envelope: {e.error_count()} error(s)") from e


def parse_checkout_session(event: ProviderEvent) -> CheckoutSession:
    """
    Validate the checkout session carried by a ``checkout.session.completed`` event.

    Raises:
        MalformedEvent: If required booking fields are missing or invalid
    """
    try:
        return CheckoutSession.model_validate(event.data.object)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedEvent(f"Invalid checkout session fields: {', '.join(fields)}") from e


def build_handoff(result: WriteResult) -> NotificationHandoff:
    record = result.reservation
    return NotificationHandoff(
        reservation_id=str(record.id),
        event_id=record.event_id,
        property_code=record.property_code,
        start_date=record.start_date,
        end_date=record.end_date,
        contact_email=record.contact_email,
        amount=record.amount,
        currency=record.currency,
        pending=result.status == WriteStatus.DEGRADED,
    )


class IngestionService:
    """
    Single ingestion pipeline for payment confirmation webhooks.

    Example:
        >>> service = IngestionService(settings, ledger)
        >>> result = service.ingest(raw_body, request.headers.get("Stripe-Signature"))
        >>> result.status
        <IngestStatus.ACCEPTED: 'accepted'>
    """

    def __init__(self, settings: Settings, ledger: ReservationLedger):
        self.settings = settings
        self.ledger = ledger

    def _record(self, outcome: str) -> None:
        webhook_events.labels(outcome=outcome).inc()

    def ingest(self, raw_payload: bytes, signature_header: Optional[str]) -> IngestResult:
        """
        Ingest one webhook delivery.

        Args:
            raw_payload: Raw request body, exactly as received
            signature_header: Value of the provider's signature header

        Returns:
            IngestResult: ACCEPTED, DUPLICATE, PENDING, CONFLICT or IGNORED

        Raises:
            InvalidSignature: Signature missing or wrong (terminal)
            MalformedEvent: Payload does not match the canonical schema (terminal)
        """
        try:
            verify_signature(
                raw_payload,
                signature_header,
                self.settings.webhook_secret,
                self.settings.webhook_tolerance_seconds,
            )
        except InvalidSignature:
            self._record("invalid_signature")
            raise

        try:
            event = parse_event(raw_payload)
            if event.type != CHECKOUT_COMPLETED:
                logger.info("webhook_event_ignored", event_id=event.id, event_type=event.type)
                self._record(IngestStatus.IGNORED.value)
                return IngestResult(IngestStatus.IGNORED, event.id, reason="unhandled event type")

            session = parse_checkout_session(event)
            if not self.settings.is_known_property(session.metadata.property_code):
                raise MalformedEvent(f"Unknown property {session.metadata.property_code!r}")
        except MalformedEvent as e:
            self._record("malformed")
            logger.warning("webhook_event_malformed", reason=str(e))
            raise

        if not session.is_settled:
            logger.info(
                "webhook_event_ignored",
                event_id=event.id,
                event_type=event.type,
                payment_status=session.payment_status,
            )
            self._record(IngestStatus.IGNORED.value)
            return IngestResult(IngestStatus.IGNORED, event.id, reason="payment not settled")

        record = ReservationRecord.for_stay(
            property_code=session.metadata.property_code,
            start_date=session.metadata.start_date,
            nights=session.metadata.nights,
            event_id=event.id,
            contact_email=session.metadata.email,
            amount=session.amount_total,
            currency=session.currency.lower() if session.currency else None,
        )

        result = self.ledger.write(record, event.type)
        status = _STATUS_BY_WRITE[result.status]
        self._record(status.value)

        logger.info(
            "webhook_event_ingested",
            event_id=event.id,
            status=status.value,
            property_code=record.property_code,
            start_date=record.start_date.isoformat(),
            nights=record.nights,
        )

        if status in (IngestStatus.ACCEPTED, IngestStatus.PENDING):
            return IngestResult(status, event.id, record, handoff=build_handoff(result))
        if status == IngestStatus.CONFLICT:
            return IngestResult(
                status,
                event.id,
                record,
                reason="dates overlap an existing reservation",
            )
        # DUPLICATE: the stored reservation keeps the id of the first delivery
        return IngestResult(status, event.id)
