# backend/coachwire/models/__init__.py
"""
SQLAlchemy models for the CoachWire booking core.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import Booking
from .class_offering import ClassOffering
from .gym import Gym
from .profile import Profile

__all__ = ["Booking", "ClassOffering", "Gym", "Profile"]
