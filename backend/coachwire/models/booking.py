# backend/coachwire/models/booking.py
"""
Booking model.

A booking ties one client to one class and to the external payment that paid
for the spot. Only ``confirmed`` rows consume capacity; ``failed`` rows exist
so that a charge which could not be turned into a reservation is still on
record next to its payment reference.
"""

from typing import Any

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus
from ..database import Base

CONFIRMED_ONLY = text("status = 'confirmed'")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    class_id = Column(String(26), ForeignKey("classes.id"), nullable=False, index=True)
    client_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    stripe_payment_id = Column(
        String(255), nullable=True, index=True, comment="Stripe PaymentIntent id"
    )
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    class_offering = relationship("ClassOffering", backref="bookings")
    client = relationship("Profile", backref="bookings")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'failed')",
            name="ck_bookings_status",
        ),
        # One confirmed seat per client per class, enforced by the store itself.
        Index(
            "uq_bookings_confirmed_class_client",
            "class_id",
            "client_id",
            unique=True,
            postgresql_where=CONFIRMED_ONLY,
            sqlite_where=CONFIRMED_ONLY,
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: class={self.class_id}, client={self.client_id}, "
            f"status={self.status}, payment={self.stripe_payment_id}>"
        )
