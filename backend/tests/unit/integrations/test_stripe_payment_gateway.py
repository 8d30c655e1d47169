"""
StripePaymentGateway with the Stripe SDK patched out.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from coachwire.core.config import Settings
from coachwire.integrations.payment_gateway import (
    FakePaymentGateway,
    PaymentGatewayError,
    StripePaymentGateway,
    build_payment_gateway,
    intent_id_from_client_secret,
)

METADATA = {"class_id": "class-1", "client_id": "client-1", "attempt_id": "attempt-1"}


def _pi(
    intent_id: str = "pi_123",
    status: str = "requires_payment_method",
    amount: int = 2500,
    currency: str = "usd",
    metadata=None,
    last_payment_error=None,
):
    return SimpleNamespace(
        id=intent_id,
        client_secret=f"{intent_id}_secret_xyz",
        status=status,
        amount=amount,
        currency=currency,
        metadata=metadata if metadata is not None else dict(METADATA),
        last_payment_error=last_payment_error,
    )


@pytest.fixture
def stripe_gateway() -> StripePaymentGateway:
    return StripePaymentGateway(api_key="sk_test_123", capture_method="manual")


def test_requires_api_key():
    with pytest.raises(ValueError):
        StripePaymentGateway(api_key="")


@patch("stripe.PaymentIntent.create")
def test_create_intent_passes_idempotency_key_and_metadata(mock_create, stripe_gateway):
    mock_create.return_value = _pi()

    intent = stripe_gateway.create_intent(
        amount=2500, currency="usd", metadata=METADATA, idempotency_key="booking-intent:k"
    )

    mock_create.assert_called_once_with(
        amount=2500,
        currency="usd",
        capture_method="manual",
        automatic_payment_methods={"enabled": True},
        metadata=METADATA,
        idempotency_key="booking-intent:k",
    )
    assert intent.id == "pi_123"
    assert intent.client_secret == "pi_123_secret_xyz"
    assert intent.metadata == METADATA
    assert intent.is_reusable


@pytest.mark.parametrize(
    ("error", "retryable"),
    [
        (stripe.APIConnectionError("network down"), True),
        (stripe.RateLimitError("slow down"), True),
        (stripe.APIError("boom"), True),
        (stripe.CardError("declined", None, "card_declined"), False),
        (stripe.InvalidRequestError("bad currency", "currency"), False),
        (stripe.AuthenticationError("bad key"), False),
    ],
)
@patch("stripe.PaymentIntent.create")
def test_stripe_errors_are_translated(mock_create, stripe_gateway, error, retryable):
    mock_create.side_effect = error

    with pytest.raises(PaymentGatewayError) as exc_info:
        stripe_gateway.create_intent(amount=2500, currency="usd", metadata=METADATA)

    assert exc_info.value.retryable is retryable
    assert exc_info.value.__cause__ is error


@patch("stripe.PaymentIntent.search")
def test_find_open_intent_filters_by_status_and_amount(mock_search, stripe_gateway):
    mock_search.return_value = SimpleNamespace(
        data=[
            _pi("pi_paid", status="succeeded"),
            _pi("pi_other_price", amount=1000),
            _pi("pi_open", status="requires_action"),
        ]
    )

    intent = stripe_gateway.find_open_intent(metadata=METADATA, amount=2500, currency="usd")

    assert intent is not None
    assert intent.id == "pi_open"
    query = mock_search.call_args.kwargs["query"]
    assert "metadata['class_id']:'class-1'" in query
    assert "metadata['client_id']:'client-1'" in query


@patch("stripe.PaymentIntent.search")
def test_find_open_intent_without_identifiers_skips_search(mock_search, stripe_gateway):
    assert stripe_gateway.find_open_intent(metadata={}, amount=2500, currency="usd") is None
    mock_search.assert_not_called()


@patch("stripe.PaymentIntent.retrieve")
def test_retrieve_reads_decline_code(mock_retrieve, stripe_gateway):
    mock_retrieve.return_value = _pi(
        last_payment_error={"code": "card_declined", "decline_code": "insufficient_funds"}
    )

    intent = stripe_gateway.retrieve_intent("pi_123")

    assert intent.last_error_code == "insufficient_funds"


@patch("stripe.PaymentIntent.retrieve")
def test_missing_intent_reports_404(mock_retrieve, stripe_gateway):
    error = stripe.InvalidRequestError("No such payment_intent", "id", code="resource_missing")
    error.http_status = 404
    mock_retrieve.side_effect = error

    with pytest.raises(PaymentGatewayError) as exc_info:
        stripe_gateway.retrieve_intent("pi_missing")

    assert exc_info.value.status_code == 404
    assert exc_info.value.error_code == "resource_missing"
    assert exc_info.value.retryable is False


@patch("stripe.PaymentIntent.cancel")
def test_cancel_marks_intent_abandoned(mock_cancel, stripe_gateway):
    mock_cancel.return_value = _pi(status="canceled")

    intent = stripe_gateway.cancel_intent("pi_123")

    mock_cancel.assert_called_once_with("pi_123", cancellation_reason="abandoned")
    assert intent.status == "canceled"


@patch("stripe.PaymentIntent.capture")
def test_capture_is_idempotent_per_intent(mock_capture, stripe_gateway):
    mock_capture.return_value = _pi(status="succeeded")

    stripe_gateway.capture_intent("pi_123")

    mock_capture.assert_called_once_with("pi_123", idempotency_key="capture:pi_123")


def test_client_secret_parsing():
    assert intent_id_from_client_secret("pi_abc_secret_def") == "pi_abc"
    with pytest.raises(ValueError):
        intent_id_from_client_secret("pi_abc")
    with pytest.raises(ValueError):
        intent_id_from_client_secret("_secret_def")


def test_build_payment_gateway_falls_back_to_fake_outside_production():
    settings = Settings(_env_file=None, environment="development", stripe_secret_key="")
    assert isinstance(build_payment_gateway(settings), FakePaymentGateway)


def test_build_payment_gateway_uses_stripe_when_configured():
    settings = Settings(_env_file=None, stripe_secret_key="sk_test_abc")
    assert isinstance(build_payment_gateway(settings), StripePaymentGateway)
