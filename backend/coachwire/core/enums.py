# backend/coachwire/core/enums.py
"""
Core enums for the CoachWire booking core.

String enums so values round-trip through the database and JSON unchanged.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles stored on profiles by the identity provider."""

    COACH = "coach"
    CLIENT = "client"


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PaymentAuthorizationStatus(str, Enum):
    AUTHORIZED = "authorized"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class CaptureMethod(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"
