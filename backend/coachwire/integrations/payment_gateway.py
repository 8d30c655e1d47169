"""Payment gateway clients: Stripe PaymentIntents and an in-memory fake."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from pydantic import SecretStr
import stripe

from ..core.config import Settings
from ..core.ulid_helper import generate_ulid

logger = logging.getLogger(__name__)

# Intents in these states have not been paid or abandoned yet, so a new attempt
# for the same client and class can present them again instead of creating one.
REUSABLE_INTENT_STATUSES = frozenset(
    {
        "requires_payment_method",
        "requires_confirmation",
        "requires_action",
        "processing",
        "requires_capture",
    }
)


class PaymentGatewayError(RuntimeError):
    """Raised when the payment gateway call fails."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code
        self.error_code = error_code


@dataclass(frozen=True)
class GatewayIntent:
    """Gateway-agnostic view of a PaymentIntent."""

    id: str
    client_secret: str
    status: str
    amount: int
    currency: str
    metadata: Dict[str, str] = field(default_factory=dict)
    last_error_code: Optional[str] = None

    @property
    def is_reusable(self) -> bool:
        return self.status in REUSABLE_INTENT_STATUSES


class PaymentGateway(Protocol):
    def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> GatewayIntent: ...

    def find_open_intent(
        self, *, metadata: Dict[str, str], amount: int, currency: str
    ) -> Optional[GatewayIntent]: ...

    def retrieve_intent(self, intent_id: str) -> GatewayIntent: ...

    def cancel_intent(self, intent_id: str) -> GatewayIntent: ...

    def capture_intent(self, intent_id: str) -> GatewayIntent: ...


def intent_id_from_client_secret(client_secret: str) -> str:
    """PaymentIntent client secrets have the form ``<intent id>_secret_<nonce>``."""
    intent_id, sep, _ = client_secret.partition("_secret_")
    if not sep or not intent_id:
        raise ValueError("client_secret is not a PaymentIntent client secret")
    return intent_id


class StripePaymentGateway:
    """Thin client over ``stripe.PaymentIntent``."""

    def __init__(
        self,
        *,
        api_key: str | SecretStr,
        capture_method: str = "automatic",
        max_network_retries: int = 1,
    ) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if not secret_value:
            raise ValueError("Stripe API key must be provided")
        stripe.api_key = secret_value
        # The adapter retries on top of this, so keep the SDK's own retries low
        stripe.max_network_retries = max_network_retries
        self._capture_method = capture_method

    def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> GatewayIntent:
        with _translate_stripe_errors("create_intent"):
            pi = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                capture_method=self._capture_method,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        return _to_gateway_intent(pi)

    def find_open_intent(
        self, *, metadata: Dict[str, str], amount: int, currency: str
    ) -> Optional[GatewayIntent]:
        # Search is eventually consistent; idempotency keys cover the gap.
        query = " AND ".join(
            f"metadata['{key}']:'{metadata[key]}'"
            for key in ("class_id", "client_id")
            if metadata.get(key)
        )
        if not query:
            return None
        with _translate_stripe_errors("find_open_intent"):
            result = stripe.PaymentIntent.search(query=query, limit=10)
        for pi in result.data:
            intent = _to_gateway_intent(pi)
            if intent.is_reusable and intent.amount == amount and intent.currency == currency:
                return intent
        return None

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        with _translate_stripe_errors("retrieve_intent"):
            pi = stripe.PaymentIntent.retrieve(intent_id)
        return _to_gateway_intent(pi)

    def cancel_intent(self, intent_id: str) -> GatewayIntent:
        with _translate_stripe_errors("cancel_intent"):
            pi = stripe.PaymentIntent.cancel(intent_id, cancellation_reason="abandoned")
        return _to_gateway_intent(pi)

    def capture_intent(self, intent_id: str) -> GatewayIntent:
        with _translate_stripe_errors("capture_intent"):
            pi = stripe.PaymentIntent.capture(
                intent_id, idempotency_key=f"capture:{intent_id}"
            )
        return _to_gateway_intent(pi)


_RETRYABLE_STRIPE_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)


@contextmanager
def _translate_stripe_errors(operation: str) -> Iterator[None]:
    """Map SDK exceptions onto PaymentGatewayError with a retryable flag."""
    try:
        yield
    except stripe.StripeError as exc:
        retryable = isinstance(exc, _RETRYABLE_STRIPE_ERRORS)
        logger.warning(
            "Stripe %s failed: %s",
            operation,
            exc,
            extra={
                "operation": operation,
                "retryable": retryable,
                "http_status": getattr(exc, "http_status", None),
                "stripe_code": getattr(exc, "code", None),
            },
        )
        raise PaymentGatewayError(
            f"Stripe {operation} failed: {exc}",
            retryable=retryable,
            status_code=getattr(exc, "http_status", None),
            error_code=getattr(exc, "code", None),
        ) from exc


def _to_gateway_intent(pi: Any) -> GatewayIntent:
    last_error = getattr(pi, "last_payment_error", None)
    last_error_code = None
    if last_error:
        last_error_code = (
            last_error.get("decline_code") or last_error.get("code") or "payment_failed"
        )
    metadata = getattr(pi, "metadata", None) or {}
    return GatewayIntent(
        id=pi.id,
        client_secret=getattr(pi, "client_secret", "") or "",
        status=pi.status,
        amount=int(pi.amount),
        currency=str(pi.currency),
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
        last_error_code=last_error_code,
    )


class FakePaymentGateway:
    """In-memory gateway used for local runs and tests.

    Newly created intents wait in ``requires_payment_method``. When
    ``auto_confirm_status`` is set, the first retrieve moves the intent to that
    status, which stands in for the payer finishing the payment sheet.
    """

    def __init__(self, *, auto_confirm_status: Optional[str] = "succeeded") -> None:
        self.auto_confirm_status = auto_confirm_status
        self.intents: Dict[str, GatewayIntent] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._idempotency: Dict[str, str] = {}
        self._create_failures: List[Tuple[PaymentGatewayError, bool]] = []
        self._confirmed: set[str] = set()
        self._lock = threading.Lock()

    # Scripting helpers

    def fail_next_create(
        self, error: Optional[PaymentGatewayError] = None, *, after_commit: bool = False
    ) -> None:
        """Queue a failure for the next create; ``after_commit`` creates the intent first."""
        self._create_failures.append(
            (error or PaymentGatewayError("connection reset", retryable=True), after_commit)
        )

    def set_status(
        self, intent_id: str, status: str, *, last_error_code: Optional[str] = None
    ) -> GatewayIntent:
        with self._lock:
            intent = replace(self.intents[intent_id], status=status, last_error_code=last_error_code)
            self.intents[intent_id] = intent
            self._confirmed.add(intent_id)
            return intent

    def call_count(self, name: str) -> int:
        return sum(1 for call_name, _ in self.calls if call_name == name)

    # PaymentGateway protocol

    def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> GatewayIntent:
        with self._lock:
            self.calls.append(
                (
                    "create_intent",
                    {
                        "amount": amount,
                        "currency": currency,
                        "metadata": dict(metadata),
                        "idempotency_key": idempotency_key,
                    },
                )
            )
            failure = self._create_failures.pop(0) if self._create_failures else None
            if failure is not None and not failure[1]:
                raise failure[0]

            if idempotency_key and idempotency_key in self._idempotency:
                intent = self.intents[self._idempotency[idempotency_key]]
            else:
                intent_id = f"pi_fake_{generate_ulid()}"
                intent = GatewayIntent(
                    id=intent_id,
                    client_secret=f"{intent_id}_secret_{generate_ulid()}",
                    status="requires_payment_method",
                    amount=amount,
                    currency=currency,
                    metadata=dict(metadata),
                )
                self.intents[intent_id] = intent
                if idempotency_key:
                    self._idempotency[idempotency_key] = intent_id

            if failure is not None:
                raise failure[0]
            return intent

    def find_open_intent(
        self, *, metadata: Dict[str, str], amount: int, currency: str
    ) -> Optional[GatewayIntent]:
        with self._lock:
            self.calls.append(("find_open_intent", {"metadata": dict(metadata)}))
            for intent in self.intents.values():
                if (
                    intent.is_reusable
                    and intent.amount == amount
                    and intent.currency == currency
                    and intent.metadata.get("class_id") == metadata.get("class_id")
                    and intent.metadata.get("client_id") == metadata.get("client_id")
                ):
                    return intent
            return None

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        with self._lock:
            self.calls.append(("retrieve_intent", {"intent_id": intent_id}))
            intent = self._get(intent_id)
            if self.auto_confirm_status and intent_id not in self._confirmed:
                intent = replace(intent, status=self.auto_confirm_status)
                self.intents[intent_id] = intent
                self._confirmed.add(intent_id)
            return intent

    def cancel_intent(self, intent_id: str) -> GatewayIntent:
        with self._lock:
            self.calls.append(("cancel_intent", {"intent_id": intent_id}))
            intent = self._get(intent_id)
            if intent.status in ("succeeded", "canceled"):
                raise PaymentGatewayError(
                    f"PaymentIntent {intent_id} cannot be canceled from {intent.status}",
                    status_code=400,
                    error_code="payment_intent_unexpected_state",
                )
            intent = replace(intent, status="canceled")
            self.intents[intent_id] = intent
            self._confirmed.add(intent_id)
            return intent

    def capture_intent(self, intent_id: str) -> GatewayIntent:
        with self._lock:
            self.calls.append(("capture_intent", {"intent_id": intent_id}))
            intent = self._get(intent_id)
            if intent.status != "requires_capture":
                raise PaymentGatewayError(
                    f"PaymentIntent {intent_id} cannot be captured from {intent.status}",
                    status_code=400,
                    error_code="payment_intent_unexpected_state",
                )
            intent = replace(intent, status="succeeded")
            self.intents[intent_id] = intent
            return intent

    def _get(self, intent_id: str) -> GatewayIntent:
        try:
            return self.intents[intent_id]
        except KeyError:
            raise PaymentGatewayError(
                f"No such payment_intent: {intent_id}",
                status_code=404,
                error_code="resource_missing",
            ) from None


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    """Return the Stripe gateway, or the fake outside production when Stripe is unset."""
    if settings.stripe_configured:
        return StripePaymentGateway(
            api_key=settings.stripe_secret_key,
            capture_method=settings.stripe_capture_method,
        )
    if settings.is_production:
        raise RuntimeError("Refusing to start: production requires STRIPE_SECRET_KEY")
    logger.warning("Stripe secret key not configured - using in-memory FakePaymentGateway")
    return FakePaymentGateway()
