# backend/coachwire/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...integrations.payment_gateway import PaymentGateway, build_payment_gateway
from ...services.booking_orchestrator import BookingOrchestrator
from ...services.ops_alerts import OpsAlertService
from ...services.payment_confirmation import GatewayConfirmationPoller
from ...services.payment_intent_adapter import PaymentIntentAdapter
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    """Process-wide gateway client."""
    gateway = build_payment_gateway(settings)
    logger.info(
        "Payment gateway selected",
        extra={"gateway": type(gateway).__name__, "capture_method": settings.stripe_capture_method},
    )
    return gateway


def get_payment_intent_adapter(
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentIntentAdapter:
    poller = GatewayConfirmationPoller(
        gateway,
        timeout_seconds=settings.payment_confirmation_timeout_seconds,
        poll_interval_seconds=settings.payment_confirmation_poll_interval_seconds,
    )
    return PaymentIntentAdapter(
        gateway,
        poller,
        max_attempts=settings.payment_gateway_max_attempts,
        retry_backoff_seconds=settings.payment_gateway_retry_backoff_seconds,
    )


def get_booking_orchestrator(
    db: Session = Depends(get_db),
    payment_adapter: PaymentIntentAdapter = Depends(get_payment_intent_adapter),
) -> BookingOrchestrator:
    return BookingOrchestrator(db, payment_adapter, alert_service=OpsAlertService())
