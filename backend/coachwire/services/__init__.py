# backend/coachwire/services/__init__.py
from .base import BaseService
from .booking_orchestrator import BookingAttempt, BookingOrchestrator, PreparedPayment
from .booking_recorder import BookingRecorder
from .capacity_gate import Availability, CapacityGate
from .ops_alerts import OpsAlertService
from .payment_confirmation import GatewayConfirmationPoller
from .payment_intent_adapter import PaymentAuthorization, PaymentIntentAdapter

__all__ = [
    "Availability",
    "BaseService",
    "BookingAttempt",
    "BookingOrchestrator",
    "BookingRecorder",
    "CapacityGate",
    "GatewayConfirmationPoller",
    "OpsAlertService",
    "PaymentAuthorization",
    "PaymentIntentAdapter",
    "PreparedPayment",
]
