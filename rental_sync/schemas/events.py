"""
Canonical schema of inbound payment confirmation events.

Only one shape is accepted: the booking metadata keys the checkout page sends
(``logement``, ``date``, ``nuits``, ``email``). Other spellings (``arrivalDate``,
``date_debut``, ``property`` ...) are rejected instead of being tried as fallbacks.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CHECKOUT_COMPLETED = "checkout.session.completed"

MAX_NIGHTS = 365

# Stripe payment_status values meaning the money is secured
SETTLED_PAYMENT_STATUSES = {"paid", "no_payment_required"}


class ProviderEventData(BaseModel):
    object: dict[str, Any]


class ProviderEvent(BaseModel):
    """
    Envelope of a payment provider webhook event.

    The envelope carries many more fields; only these are read.
    """

    id: str = Field(..., min_length=1, description="Globally unique provider event id")
    type: str = Field(..., min_length=1, description="Provider event type")
    data: ProviderEventData


class BookingMetadata(BaseModel):
    """Booking details attached to the checkout session when it was created."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    property_code: str = Field(
        ..., alias="logement", min_length=1, description="Property code, e.g. BLOM"
    )
    start_date: date = Field(..., alias="date", description="Arrival date (ISO 8601)")
    nights: int = Field(..., alias="nuits", gt=0, le=MAX_NIGHTS, description="Number of nights")
    email: Optional[str] = Field(None, description="Guest contact email")

    @field_validator("property_code")
    @classmethod
    def normalize_property(cls, value: str) -> str:
        return value.upper()

    @field_validator("email")
    @classmethod
    def blank_email_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @model_validator(mode="after")
    def end_date_in_range(self) -> "BookingMetadata":
        if (date.max - self.start_date).days < self.nights:
            raise ValueError("stay ends after the last supported date")
        return self


class CheckoutSession(BaseModel):
    """The checkout session object of a ``checkout.session.completed`` event."""

    id: str = Field(..., min_length=1)
    metadata: BookingMetadata
    amount_total: Optional[int] = Field(None, ge=0, description="Minor currency units")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_status: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.payment_status is None or self.payment_status in SETTLED_PAYMENT_STATUSES
