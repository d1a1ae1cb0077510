# models/reservations.py

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
)

from rental_sync.config import SCHEMA
from rental_sync.models.base import Base


class Reservation(Base):
    """
    ORM model for authoritative reservations.

    A reservation is created from exactly one confirmed payment event and is never
    updated afterwards. ``end_date`` is exclusive: a two-night stay starting on
    2025-09-10 is stored as [2025-09-10, 2025-09-12).

    On PostgreSQL the migration adds an exclusion constraint rejecting overlapping
    ranges for the same property; the ledger performs the same check under a row lock.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_reservations_start_before_end"),
        Index("ix_reservations_property_start", "property_code", "start_date"),
        {"schema": SCHEMA},
    )

    id = Column(Uuid, primary_key=True)
    property_code = Column(
        String(16), ForeignKey(f"{SCHEMA}.properties.code"), nullable=False
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    contact_email = Column(String, nullable=True)
    amount = Column(BigInteger, nullable=True)  # Minor currency units
    currency = Column(String(3), nullable=True)
    event_id = Column(
        String,
        ForeignKey(f"{SCHEMA}.webhook_events.event_id"),
        nullable=False,
        unique=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False)
