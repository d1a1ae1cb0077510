"""In-memory reservation record and ledger result types."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from rental_sync.utils.datetime import utc_now


class WriteStatus(str, Enum):
    COMMITTED = "committed"
    CONFLICT = "conflict"
    DEGRADED = "degraded"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class ReservationRecord:
    """
    An authoritative reservation as handled by the ledger.

    ``end_date`` is exclusive. The id is assigned before the first write attempt so
    that a record parked in the write-ahead log keeps its identity through replay.
    """

    property_code: str
    start_date: date
    end_date: date
    event_id: str
    contact_email: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.start_date >= self.end_date:
            raise ValueError(
                f"Reservation start {self.start_date} must be before end {self.end_date}"
            )

    @classmethod
    def for_stay(
        cls, property_code: str, start_date: date, nights: int, event_id: str, **kwargs: Any
    ) -> "ReservationRecord":
        """Build a record covering ``nights`` nights from ``start_date`` (half-open)."""
        return cls(
            property_code=property_code,
            start_date=start_date,
            end_date=start_date + timedelta(days=nights),
            event_id=event_id,
            **kwargs,
        )

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date < end and start < self.end_date

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "property_code": self.property_code,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "contact_email": self.contact_email,
            "amount": self.amount,
            "currency": self.currency,
            "event_id": self.event_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: Any) -> "ReservationRecord":
        """Build a record from a SQLAlchemy row mapping."""
        created_at = row["created_at"]
        if created_at.tzinfo is None:
            # SQLite drops the offset; stored values are always UTC
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            id=row["id"],
            property_code=row["property_code"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            event_id=row["event_id"],
            contact_email=row["contact_email"],
            amount=row["amount"],
            currency=row["currency"],
            created_at=created_at,
        )

    def to_json_dict(self) -> dict[str, Any]:
        data = self.to_row()
        data["id"] = str(self.id)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_json_dict(cls, data: dict[str, Any]) -> "ReservationRecord":
        return cls(
            id=uuid.UUID(data["id"]),
            property_code=data["property_code"],
            start_date=date.fromisoformat(data["start_date"]),
            end_date=date.fromisoformat(data["end_date"]),
            event_id=data["event_id"],
            contact_email=data.get("contact_email"),
            amount=data.get("amount"),
            currency=data.get("currency"),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class WriteResult:
    status: WriteStatus
    reservation: ReservationRecord
    conflicts_with: tuple[ReservationRecord, ...] = ()


@dataclass
class ReconcileReport:
    """Outcome counts of one write-ahead log replay."""

    committed: int = 0
    duplicate: int = 0
    rejected: int = 0
    remaining: int = 0
    store_available: bool = True

    def as_dict(self) -> dict[str, Any]:
        return {
            "committed": self.committed,
            "duplicate": self.duplicate,
            "rejected": self.rejected,
            "remaining": self.remaining,
            "store_available": self.store_available,
        }
