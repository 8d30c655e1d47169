# backend/coachwire/models/profile.py
"""
Profile model.

Profiles mirror identity provider accounts; the id is the provider's subject
and the role decides whether the account publishes classes or books them.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, String, Text
from sqlalchemy.sql import func

from ..core.enums import RoleName
from ..database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    role = Column(String(10), nullable=False, default=RoleName.CLIENT.value)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (CheckConstraint("role IN ('coach', 'client')", name="ck_profiles_role"),)

    def __repr__(self) -> str:
        return f"<Profile {self.id}: role={self.role}>"
