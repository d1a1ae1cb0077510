from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from rental_sync.ledger.records import ReservationRecord
from rental_sync.models.properties import Property
from rental_sync.models.reservations import Reservation
from rental_sync.models.webhook_events import WebhookEvent


def lock_property(conn: Connection, property_code: str) -> bool:
    """
    Lock a property's row for the rest of the current transaction.

    Concurrent writers for the same property queue behind this lock, which makes
    the subsequent overlap check and insert atomic per property.

    Args:
        conn (Connection): Connection inside an open transaction.
        property_code (str): Property to lock.

    Returns:
        bool: False if the property does not exist.
    """
    row = conn.execute(
        select(Property.code).where(Property.code == property_code).with_for_update()
    ).fetchone()
    return row is not None


def event_exists(conn: Connection, event_id: str) -> bool:
    """Return True if the webhook event has already been recorded."""
    row = conn.execute(
        select(WebhookEvent.event_id).where(WebhookEvent.event_id == event_id)
    ).fetchone()
    return row is not None


def find_overlapping(
    conn: Connection, property_code: str, start_date: date, end_date: date
) -> list[ReservationRecord]:
    """
    Find reservations of a property intersecting the half-open range [start_date, end_date).

    Args:
        conn (Connection): An active SQLAlchemy connection.
        property_code (str): Property code.
        start_date (date): Range start (inclusive).
        end_date (date): Range end (exclusive).

    Returns:
        list[ReservationRecord]: Overlapping reservations ordered by start date.
    """
    result = conn.execute(
        select(Reservation.__table__)
        .where(Reservation.property_code == property_code)
        .where(Reservation.start_date < end_date)
        .where(Reservation.end_date > start_date)
        .order_by(Reservation.start_date)
    )
    return [ReservationRecord.from_row(row) for row in result.mappings()]


def list_reservations(
    conn: Connection,
    property_code: str,
    range_start: Optional[date] = None,
    range_end: Optional[date] = None,
) -> list[ReservationRecord]:
    """
    List a property's reservations, optionally restricted to those intersecting a window.

    Args:
        conn (Connection): An active SQLAlchemy connection.
        property_code (str): Property code.
        range_start (Optional[date]): Window start (inclusive), open-ended if None.
        range_end (Optional[date]): Window end (exclusive), open-ended if None.

    Returns:
        list[ReservationRecord]: Reservations ordered by start date.
    """
    stmt = select(Reservation.__table__).where(Reservation.property_code == property_code)
    if range_end is not None:
        stmt = stmt.where(Reservation.start_date < range_end)
    if range_start is not None:
        stmt = stmt.where(Reservation.end_date > range_start)
    result = conn.execute(stmt.order_by(Reservation.start_date, Reservation.end_date))
    return [ReservationRecord.from_row(row) for row in result.mappings()]
