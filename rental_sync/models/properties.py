"""SQLAlchemy model for the fixed set of rental properties."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from rental_sync.config import SCHEMA
from rental_sync.models.base import Base


class Property(Base):
    """
    ORM model for a rental property.

    Reference data seeded from configuration at startup. Ledger writes lock the
    property's row so that overlap checks for one property are serialised.
    """

    __tablename__ = "properties"
    __table_args__ = {"schema": SCHEMA}

    code = Column(String(16), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
