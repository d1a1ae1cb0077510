"""
Unit tests for the notification handoff.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import Mock

import pytest

from rental_sync.services.notifier import (
    LoggingNotifier,
    NotificationHandoff,
    dispatch_notification,
)


@pytest.fixture
def handoff() -> NotificationHandoff:
    return NotificationHandoff(
        reservation_id="0b9e4f0e-8f59-4a8c-9f0a-5b2d1c3e4f5a",
        event_id="evt_1",
        property_code="BLOM",
        start_date=date(2025, 9, 10),
        end_date=date(2025, 9, 12),
        contact_email="guest@example.com",
        amount=24000,
        currency="eur",
        pending=False,
    )


@pytest.mark.unit
def test_handoff_serializes_dates(handoff: NotificationHandoff) -> None:
    data = handoff.as_dict()

    assert data["start_date"] == "2025-09-10"
    assert data["end_date"] == "2025-09-12"
    assert data["pending"] is False


@pytest.mark.unit
def test_dispatch_calls_notifier(handoff: NotificationHandoff) -> None:
    notifier = Mock()

    dispatch_notification(notifier, handoff)

    notifier.notify.assert_called_once_with(handoff)


@pytest.mark.unit
def test_dispatch_contains_notifier_failure(handoff: NotificationHandoff) -> None:
    notifier = Mock()
    notifier.notify.side_effect = ConnectionError("smtp down")

    dispatch_notification(notifier, handoff)


@pytest.mark.unit
def test_logging_notifier_accepts_handoff(handoff: NotificationHandoff) -> None:
    LoggingNotifier().notify(handoff)
