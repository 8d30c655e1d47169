# backend/coachwire/services/payment_confirmation.py
"""
Resolution of the payer-facing confirmation step.

The payment sheet runs on the client device; the server learns the result by
watching the PaymentIntent until it reaches a final disposition. Attempts the
payer never finishes are cancelled at the gateway once the timeout expires.
"""

from dataclasses import dataclass
import logging
import time
from typing import Callable, Optional, Protocol

from ..core.enums import PaymentAuthorizationStatus
from ..core.exceptions import GatewayUnavailableError, ValidationException
from ..integrations.payment_gateway import (
    GatewayIntent,
    PaymentGateway,
    PaymentGatewayError,
    intent_id_from_client_secret,
)
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

AUTHORIZED_INTENT_STATUSES = frozenset({"requires_capture", "succeeded"})


@dataclass(frozen=True)
class ConfirmationOutcome:
    status: PaymentAuthorizationStatus
    intent: GatewayIntent


class ConfirmationCollector(Protocol):
    def collect_confirmation(self, client_secret: str) -> ConfirmationOutcome: ...


def resolve_intent_status(intent: GatewayIntent) -> Optional[PaymentAuthorizationStatus]:
    """Map a PaymentIntent to a final outcome, or None while the payer is still deciding."""
    if intent.status in AUTHORIZED_INTENT_STATUSES:
        return PaymentAuthorizationStatus.AUTHORIZED
    if intent.status == "canceled":
        return PaymentAuthorizationStatus.CANCELLED
    if intent.status == "requires_payment_method" and intent.last_error_code:
        return PaymentAuthorizationStatus.DECLINED
    return None


class GatewayConfirmationPoller:
    """Polls the gateway until the intent settles or the payer runs out of time."""

    def __init__(
        self,
        gateway: PaymentGateway,
        *,
        timeout_seconds: float,
        poll_interval_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._clock = clock

    def collect_confirmation(self, client_secret: str) -> ConfirmationOutcome:
        try:
            intent_id = intent_id_from_client_secret(client_secret)
        except ValueError as exc:
            raise ValidationException(str(exc), code="INVALID_CLIENT_SECRET") from exc

        deadline = self._clock() + self.timeout_seconds
        while True:
            intent = self._retrieve(intent_id)
            if intent is not None:
                status = resolve_intent_status(intent)
                if status is not None:
                    return ConfirmationOutcome(status=status, intent=intent)

            remaining = deadline - self._clock()
            if remaining <= 0:
                return self._abandon(intent_id)
            self._sleep(min(self.poll_interval_seconds, remaining))

    def _retrieve(self, intent_id: str) -> Optional[GatewayIntent]:
        try:
            return self.gateway.retrieve_intent(intent_id)
        except PaymentGatewayError as exc:
            prometheus_metrics.record_gateway_error("retrieve_intent", exc.retryable)
            if not exc.retryable:
                raise GatewayUnavailableError(
                    details={"payment_ref": intent_id, "error": str(exc)}
                ) from exc
            logger.warning(
                "Transient gateway failure while waiting for confirmation",
                extra={"payment_ref": intent_id, "error": str(exc)},
            )
            return None

    def _abandon(self, intent_id: str) -> ConfirmationOutcome:
        logger.info(
            "Payment confirmation timed out; cancelling intent",
            extra={"payment_ref": intent_id, "timeout_seconds": self.timeout_seconds},
        )
        try:
            cancelled = self.gateway.cancel_intent(intent_id)
        except PaymentGatewayError as exc:
            prometheus_metrics.record_gateway_error("cancel_intent", exc.retryable)
            # The payer may have finished between the last poll and the cancel.
            latest = self._retrieve(intent_id)
            if latest is not None:
                status = resolve_intent_status(latest)
                if status is not None:
                    return ConfirmationOutcome(status=status, intent=latest)
            raise GatewayUnavailableError(
                details={"payment_ref": intent_id, "error": str(exc)}
            ) from exc
        return ConfirmationOutcome(status=PaymentAuthorizationStatus.CANCELLED, intent=cancelled)
