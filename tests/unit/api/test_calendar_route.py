"""Unit tests for the calendar export endpoint."""

from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient
from icalendar import Calendar

from rental_sync.ledger.ledger import ReservationLedger
from rental_sync.ledger.records import ReservationRecord


@pytest.mark.unit
def test_export_returns_calendar_attachment(client: TestClient, ledger: ReservationLedger) -> None:
    record = ReservationRecord.for_stay("BLOM", date(2025, 9, 10), 2, "evt_1")
    ledger.write(record, "checkout.session.completed")

    response = client.get("/ical/BLOM.ics")

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/calendar; charset=utf-8"
    assert response.headers["content-disposition"] == "attachment; filename=blom.ics"

    cal = Calendar.from_ical(response.content)
    [event] = cal.walk("VEVENT")
    assert str(event["UID"]) == f"{record.id}@test.rental-sync"
    assert event["DTSTART"].dt == date(2025, 9, 10)
    assert event["DTEND"].dt == date(2025, 9, 12)


@pytest.mark.unit
def test_export_is_stable_between_requests(client: TestClient, ledger: ReservationLedger) -> None:
    ledger.write(
        ReservationRecord.for_stay("BLOM", date(2025, 9, 10), 2, "evt_1"),
        "checkout.session.completed",
    )

    assert client.get("/ical/BLOM.ics").content == client.get("/ical/blom.ics").content


@pytest.mark.unit
def test_export_without_reservations_is_empty_calendar(client: TestClient) -> None:
    response = client.get("/ical/LIVA.ics")

    assert response.status_code == 200
    assert list(Calendar.from_ical(response.content).walk("VEVENT")) == []


@pytest.mark.unit
def test_export_unknown_property_returns_404(client: TestClient) -> None:
    assert client.get("/ical/NOPE.ics").status_code == 404
