# backend/coachwire/services/payment_intent_adapter.py
"""
Payment Intent Adapter

Hides the gateway's two-step flow (create an intent, then collect the payer's
confirmation) behind a single ``authorize_payment`` call. The adapter never
touches the database; the booking services decide what an authorization means.
"""

from dataclasses import dataclass
import logging
import time
from typing import Callable, Dict, List, Optional

from ..core.enums import PaymentAuthorizationStatus
from ..core.exceptions import (
    GatewayUnavailableError,
    InvalidAmountError,
    PaymentCancelledError,
    PaymentDeclinedError,
)
from ..integrations.payment_gateway import GatewayIntent, PaymentGateway, PaymentGatewayError
from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService
from .payment_confirmation import ConfirmationCollector

logger = logging.getLogger(__name__)

# An explicitly referenced intent may already be paid for by the time the
# booking request arrives.
ADOPTABLE_INTENT_STATUSES = frozenset(
    {
        "requires_payment_method",
        "requires_confirmation",
        "requires_action",
        "processing",
        "requires_capture",
        "succeeded",
    }
)


@dataclass(frozen=True)
class PaymentAuthorization:
    """Result of a successful authorization. Never persisted on its own."""

    intent_id: str
    client_secret: str
    status: PaymentAuthorizationStatus
    amount: int
    currency: str

    @property
    def payment_ref(self) -> str:
        return self.intent_id


def booking_intent_idempotency_key(metadata: Dict[str, str]) -> Optional[str]:
    attempt_id = metadata.get("attempt_id")
    if not attempt_id:
        return None
    return f"booking-intent:{metadata.get('client_id')}:{metadata.get('class_id')}:{attempt_id}"


class PaymentIntentAdapter:
    def __init__(
        self,
        gateway: PaymentGateway,
        collector: ConfirmationCollector,
        *,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.gateway = gateway
        self.collector = collector
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep
        self.logger = logging.getLogger(self.__class__.__name__)

    @BaseService.measure_operation("authorize_payment")
    def authorize_payment(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        *,
        intent_id: Optional[str] = None,
    ) -> PaymentAuthorization:
        """
        Create (or reuse) an intent and wait for the payer's decision.

        Raises:
            InvalidAmountError: amount is zero or negative; no gateway call is made
            GatewayUnavailableError: the gateway could not be reached
            PaymentDeclinedError: the payer's instrument was declined
            PaymentCancelledError: the payer abandoned the confirmation step
        """
        intent = self.create_intent(amount, currency, metadata, intent_id=intent_id)
        return self.collect_confirmation(intent.client_secret)

    @BaseService.measure_operation("create_payment_intent")
    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        *,
        intent_id: Optional[str] = None,
    ) -> GatewayIntent:
        if amount <= 0:
            raise InvalidAmountError(amount)

        idempotency_key = booking_intent_idempotency_key(metadata)
        last_error: Optional[PaymentGatewayError] = None
        attempt = 0
        while attempt < self.max_attempts:
            attempt += 1
            try:
                # Checked on every attempt: a create that timed out may have
                # succeeded at the gateway.
                existing = self._find_reusable(amount, currency, metadata, intent_id)
                if existing is not None:
                    self.logger.info(
                        "Reusing open payment intent",
                        extra={"payment_ref": existing.id, "status": existing.status, **metadata},
                    )
                    return existing
                intent = self.gateway.create_intent(
                    amount=amount,
                    currency=currency,
                    metadata=metadata,
                    idempotency_key=idempotency_key,
                )
                self.logger.info(
                    "Created payment intent",
                    extra={"payment_ref": intent.id, "amount": amount, **metadata},
                )
                return intent
            except PaymentGatewayError as exc:
                last_error = exc
                prometheus_metrics.record_gateway_error("create_intent", exc.retryable)
                if not exc.retryable:
                    break
                if attempt < self.max_attempts:
                    delay = self.retry_backoff_seconds * attempt
                    self.logger.warning(
                        "Gateway error creating intent, retrying",
                        extra={"attempt": attempt, "delay": delay, "error": str(exc)},
                    )
                    self._sleep(delay)

        error = GatewayUnavailableError(
            details={"attempts": attempt, "error": str(last_error) if last_error else None}
        )
        if last_error is not None and not last_error.retryable:
            error.retryable = False
        self.logger.error(
            "Payment gateway unavailable after %s attempt(s): %s", attempt, last_error
        )
        raise error from last_error

    @BaseService.measure_operation("collect_payment_confirmation")
    def collect_confirmation(self, client_secret: str) -> PaymentAuthorization:
        outcome = self.collector.collect_confirmation(client_secret)
        intent = outcome.intent

        if outcome.status == PaymentAuthorizationStatus.DECLINED:
            self.logger.info(
                "Payment declined",
                extra={"payment_ref": intent.id, "decline_code": intent.last_error_code},
            )
            raise PaymentDeclinedError(intent.id, intent.last_error_code)
        if outcome.status == PaymentAuthorizationStatus.CANCELLED:
            self.logger.info("Payment cancelled by payer", extra={"payment_ref": intent.id})
            raise PaymentCancelledError(intent.id)

        return PaymentAuthorization(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            status=PaymentAuthorizationStatus.AUTHORIZED,
            amount=intent.amount,
            currency=intent.currency,
        )

    def cancel_open_intent(
        self, amount: int, currency: str, metadata: Dict[str, str]
    ) -> Optional[GatewayIntent]:
        """
        Cancel every open intent the payer holds for this class.

        Returns the first intent cancelled, or None when none was open.
        """
        cancelled: List[GatewayIntent] = []
        try:
            while True:
                existing = self.gateway.find_open_intent(
                    metadata=metadata, amount=amount, currency=currency
                )
                # Search results lag behind cancellations.
                if existing is None or any(intent.id == existing.id for intent in cancelled):
                    break
                cancelled.append(self.gateway.cancel_intent(existing.id))
        except PaymentGatewayError as exc:
            prometheus_metrics.record_gateway_error("cancel_intent", exc.retryable)
            raise GatewayUnavailableError(
                details={"error": str(exc), "cancelled": [intent.id for intent in cancelled]}
            ) from exc
        for intent in cancelled:
            self.logger.info("Cancelled open payment intent", extra={"payment_ref": intent.id})
        return cancelled[0] if cancelled else None

    @BaseService.measure_operation("capture_payment")
    def capture_payment(self, payment_ref: str) -> GatewayIntent:
        try:
            return self.gateway.capture_intent(payment_ref)
        except PaymentGatewayError as exc:
            prometheus_metrics.record_gateway_error("capture_intent", exc.retryable)
            raise GatewayUnavailableError(
                details={"payment_ref": payment_ref, "error": str(exc)}
            ) from exc

    def _find_reusable(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        intent_id: Optional[str],
    ) -> Optional[GatewayIntent]:
        if intent_id:
            try:
                referenced: Optional[GatewayIntent] = self.gateway.retrieve_intent(intent_id)
            except PaymentGatewayError as exc:
                if exc.status_code != 404:
                    raise
                referenced = None
            if referenced is not None and self._matches(referenced, amount, currency, metadata):
                return referenced
            self.logger.warning(
                "Ignoring referenced payment intent that does not match this booking",
                extra={"payment_ref": intent_id, **metadata},
            )
        return self.gateway.find_open_intent(metadata=metadata, amount=amount, currency=currency)

    @staticmethod
    def _matches(
        intent: GatewayIntent, amount: int, currency: str, metadata: Dict[str, str]
    ) -> bool:
        return (
            intent.status in ADOPTABLE_INTENT_STATUSES
            and intent.amount == amount
            and intent.currency == currency
            and intent.metadata.get("class_id") == metadata.get("class_id")
            and intent.metadata.get("client_id") == metadata.get("client_id")
        )
