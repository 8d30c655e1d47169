# backend/coachwire/models/class_offering.py
"""
ClassOffering model.

A scheduled class with a fixed capacity and a price per spot. The table keeps
the name ``classes`` used by the rest of the platform.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import cast

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

_CENT = Decimal("0.01")


class ClassOffering(Base):
    __tablename__ = "classes"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    gym_id = Column(String(26), ForeignKey("gyms.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    gym = relationship("Gym", back_populates="classes")

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="check_capacity_non_negative"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
    )

    @property
    def price_minor_units(self) -> int:
        """Price in the gateway's smallest currency unit (cents), rounded half-up."""
        price = Decimal(str(cast(Decimal, self.price)))
        return int((price.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())

    def __repr__(self) -> str:
        return f"<ClassOffering {self.id}: {self.name!r} capacity={self.capacity} price={self.price}>"
