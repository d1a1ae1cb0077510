"""
Handoff to the booking-confirmation notifier.

Sending email is an external collaborator. The ledger only produces a
NotificationHandoff; delivering it is fire-and-forget and can never undo a
reservation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NotificationHandoff:
    reservation_id: str
    event_id: str
    property_code: str
    start_date: date
    end_date: date
    contact_email: Optional[str]
    amount: Optional[int]
    currency: Optional[str]
    pending: bool  # True while the reservation only exists in the write-ahead log

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        return data


class Notifier(Protocol):
    def notify(self, handoff: NotificationHandoff) -> None: ...


class LoggingNotifier:
    """Default notifier: records the handoff in the log for an external mailer to pick up."""

    def notify(self, handoff: NotificationHandoff) -> None:
        logger.info("notification_handoff", **handoff.as_dict())


def dispatch_notification(notifier: Notifier, handoff: NotificationHandoff) -> None:
    """
    Deliver a handoff, containing any failure.

    Runs after the ledger write (as a background task), so failures are logged
    and otherwise ignored.
    """
    try:
        notifier.notify(handoff)
    except Exception as e:
        logger.exception(
            "notification_failed",
            reservation_id=handoff.reservation_id,
            event_id=handoff.event_id,
            error=str(e),
        )
