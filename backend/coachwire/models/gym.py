# backend/coachwire/models/gym.py
from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Gym(Base):
    """A coach's venue; every class belongs to exactly one gym."""

    __tablename__ = "gyms"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    coach_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    logo_url = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    coach = relationship("Profile", backref="gyms")
    classes = relationship("ClassOffering", back_populates="gym")

    def __repr__(self) -> str:
        return f"<Gym {self.id}: {self.name!r} coach={self.coach_id}>"
