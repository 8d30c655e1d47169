# backend/coachwire/api/dependencies/__init__.py
from .auth import get_current_caller
from .database import get_db
from .services import get_booking_orchestrator, get_payment_gateway, get_payment_intent_adapter

__all__ = [
    "get_booking_orchestrator",
    "get_current_caller",
    "get_db",
    "get_payment_gateway",
    "get_payment_intent_adapter",
]
