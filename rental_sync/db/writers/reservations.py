import structlog
from sqlalchemy.engine import Connection

from rental_sync.db.readers.reservations import event_exists, find_overlapping, lock_property
from rental_sync.errors import UnknownProperty
from rental_sync.ledger.records import ReservationRecord, WriteResult, WriteStatus
from rental_sync.models.reservations import Reservation
from rental_sync.models.webhook_events import WebhookEvent
from rental_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_reservation(
    conn: Connection, record: ReservationRecord, event_type: str
) -> WriteResult:
    """
    Record a webhook event and its reservation in the caller's transaction.

    The property row is locked first, so the duplicate and overlap checks below
    cannot race with another writer for the same property. Nothing is written when
    the result is CONFLICT or DUPLICATE; the caller must still roll back on any
    exception.

    Args:
        conn: Connection inside an open transaction (``engine.begin()``)
        record: Reservation to insert
        event_type: Provider event type, stored with the idempotency witness

    Returns:
        WriteResult with status COMMITTED, CONFLICT or DUPLICATE

    Raises:
        UnknownProperty: If the property has not been seeded
    """
    if not lock_property(conn, record.property_code):
        raise UnknownProperty(record.property_code)

    if event_exists(conn, record.event_id):
        logger.info(
            "reservation_event_duplicate",
            event_id=record.event_id,
            property_code=record.property_code,
        )
        return WriteResult(WriteStatus.DUPLICATE, record)

    overlapping = find_overlapping(conn, record.property_code, record.start_date, record.end_date)
    if overlapping:
        return WriteResult(WriteStatus.CONFLICT, record, tuple(overlapping))

    conn.execute(
        WebhookEvent.__table__.insert(),
        {"event_id": record.event_id, "event_type": event_type, "processed_at": utc_now()},
    )
    conn.execute(Reservation.__table__.insert(), record.to_row())

    return WriteResult(WriteStatus.COMMITTED, record)
