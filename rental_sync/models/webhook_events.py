"""SQLAlchemy model for processed payment webhook events."""

from sqlalchemy import Column, DateTime, String

from rental_sync.config import SCHEMA
from rental_sync.models.base import Base


class WebhookEvent(Base):
    """
    Idempotency witness for inbound payment events.

    One row per provider event id. The primary key is what makes a repeated
    delivery a no-op, including across process restarts.
    """

    __tablename__ = "webhook_events"
    __table_args__ = {"schema": SCHEMA}

    event_id = Column(String, primary_key=True)
    event_type = Column(String, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False)
