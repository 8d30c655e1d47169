# backend/coachwire/services/ops_alerts.py
"""Operator alerts for charges that need a human."""

import logging
from typing import Optional

import sentry_sdk

from ..core.exceptions import DomainException, PaymentNeedsReversal
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class OpsAlertService:
    """Sends reversal and capture alerts to logs, Sentry and Prometheus."""

    def payment_needs_reversal(
        self, error: PaymentNeedsReversal, *, cause: Optional[BaseException] = None
    ) -> None:
        context = dict(error.details)
        context["cause"] = type(cause).__name__ if cause is not None else None
        logger.critical(
            f"Payment {error.payment_ref} authorized without a booking ({error.reason}); "
            "manual reversal required",
            extra={"event": "payment_needs_reversal", **context},
        )
        prometheus_metrics.record_payment_reversal(error.reason)
        sentry_sdk.capture_message(
            "Payment needs manual reversal",
            level="fatal",
            tags={"payment_reason": error.reason, "class_id": error.class_id},
            extras=context,
        )

    def capture_failed(self, *, payment_ref: str, booking_id: str, error: DomainException) -> None:
        logger.error(
            f"Capture failed for payment {payment_ref} on booking {booking_id}",
            extra={
                "event": "payment_capture_failed",
                "payment_ref": payment_ref,
                "booking_id": booking_id,
                "code": error.code,
            },
        )
        sentry_sdk.capture_message(
            "Payment capture failed for confirmed booking",
            level="error",
            tags={"payment_ref": payment_ref},
            extras={"booking_id": booking_id, "code": error.code, "details": error.details},
        )
