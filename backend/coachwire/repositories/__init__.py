# backend/coachwire/repositories/__init__.py
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .class_offering_repository import ClassOfferingRepository
from .factory import RepositoryFactory
from .profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "ClassOfferingRepository",
    "ProfileRepository",
    "RepositoryFactory",
]
