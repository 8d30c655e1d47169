# backend/coachwire/schemas/booking.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AvailabilityResponse(BaseModel):
    class_id: str
    capacity: int
    confirmed: int
    remaining: int
    available: bool


class PaymentIntentResponse(BaseModel):
    """Everything the payment sheet needs to present the intent."""

    payment_intent_id: str
    client_secret: str
    amount: int = Field(..., description="Amount in the currency's minor unit")
    currency: str
    publishable_key: str = ""


class BookingCreate(BaseModel):
    payment_intent_id: Optional[str] = Field(
        default=None,
        description="Intent returned by POST /payment-intent, when the sheet was shown",
    )

    model_config = ConfigDict(extra="forbid")


class BookingResponse(BaseModel):
    id: str
    class_id: str
    client_id: str
    status: str
    stripe_payment_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
