"""Render ledger reservations as an iCalendar feed for re-publication to channels."""

from __future__ import annotations

from typing import Iterable

from icalendar import Calendar, Event

from rental_sync.ledger.records import ReservationRecord

PRODID = "-//rental-sync//Reservation Ledger//EN"
CONTENT_TYPE = "text/calendar; charset=utf-8"


def event_uid(reservation: ReservationRecord, uid_domain: str) -> str:
    """Stable event UID: the same reservation always exports under the same UID."""
    return f"{reservation.id}@{uid_domain}"


def export_calendar(
    property_code: str, reservations: Iterable[ReservationRecord], uid_domain: str
) -> bytes:
    """
    Build the calendar document for one property.

    Each reservation becomes an all-day VEVENT whose DTEND is the reservation's
    exclusive end date. DTSTAMP is the reservation's creation time, so exporting
    unchanged reservations twice yields identical events. No reservations still
    yields a valid, empty VCALENDAR.

    Args:
        property_code: Property being exported
        reservations: Reservations read from the ledger
        uid_domain: Domain suffix for event UIDs

    Returns:
        bytes: Serialized iCalendar document
    """
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", f"{property_code} reservations")

    for reservation in sorted(reservations, key=lambda r: (r.start_date, str(r.id))):
        event = Event()
        event.add("uid", event_uid(reservation, uid_domain))
        event.add("dtstamp", reservation.created_at)
        event.add("dtstart", reservation.start_date)
        event.add("dtend", reservation.end_date)
        event.add("summary", f"{property_code} reserved")
        event.add("transp", "OPAQUE")
        cal.add_component(event)

    return cal.to_ical()


def export_filename(property_code: str) -> str:
    return f"{property_code.lower()}.ics"
