"""
PaymentIntentAdapter against the in-memory gateway.
"""

from unittest.mock import patch

import pytest

from coachwire.core.enums import PaymentAuthorizationStatus
from coachwire.core.exceptions import (
    GatewayUnavailableError,
    InvalidAmountError,
    PaymentCancelledError,
    PaymentDeclinedError,
)
from coachwire.integrations.payment_gateway import FakePaymentGateway, PaymentGatewayError
from coachwire.services.payment_intent_adapter import (
    PaymentIntentAdapter,
    booking_intent_idempotency_key,
)

METADATA = {"class_id": "class-1", "client_id": "client-1", "attempt_id": "attempt-1"}


def _adapter(gateway, collector, **kwargs) -> PaymentIntentAdapter:
    sleeps: list = kwargs.pop("sleeps", [])
    return PaymentIntentAdapter(gateway, collector, sleep=sleeps.append, **kwargs)


@pytest.mark.parametrize("amount", [0, -100])
def test_non_positive_amount_is_rejected_before_any_gateway_call(gateway, collector, amount):
    adapter = _adapter(gateway, collector)

    with pytest.raises(InvalidAmountError):
        adapter.authorize_payment(amount, "usd", METADATA)

    assert gateway.calls == []
    assert collector.secrets == []


def test_authorize_creates_intent_and_returns_authorization(gateway, collector):
    adapter = _adapter(gateway, collector)

    authorization = adapter.authorize_payment(2500, "usd", METADATA)

    assert authorization.status == PaymentAuthorizationStatus.AUTHORIZED
    assert authorization.amount == 2500
    assert authorization.currency == "usd"
    assert authorization.payment_ref == authorization.intent_id
    assert gateway.intents[authorization.intent_id].status == "succeeded"
    create_call = next(params for name, params in gateway.calls if name == "create_intent")
    assert create_call["idempotency_key"] == booking_intent_idempotency_key(METADATA)
    assert create_call["metadata"] == METADATA


def test_open_intent_for_same_client_and_class_is_reused(gateway, collector):
    existing = gateway.create_intent(amount=2500, currency="usd", metadata=METADATA)
    adapter = _adapter(gateway, collector)

    intent = adapter.create_intent(2500, "usd", {**METADATA, "attempt_id": "attempt-2"})

    assert intent.id == existing.id
    assert gateway.call_count("create_intent") == 1


def test_open_intent_with_different_amount_is_not_reused(gateway, collector):
    gateway.create_intent(amount=1000, currency="usd", metadata=METADATA)
    adapter = _adapter(gateway, collector)

    intent = adapter.create_intent(2500, "usd", METADATA)

    assert intent.amount == 2500
    assert len(gateway.intents) == 2


def test_retry_after_lost_response_reuses_committed_intent(gateway, collector):
    gateway.fail_next_create(after_commit=True)
    sleeps: list = []
    adapter = _adapter(gateway, collector, sleeps=sleeps, retry_backoff_seconds=0.25)

    authorization = adapter.authorize_payment(2500, "usd", METADATA)

    assert len(gateway.intents) == 1
    assert authorization.intent_id in gateway.intents
    assert gateway.call_count("create_intent") == 1
    assert gateway.call_count("find_open_intent") == 2
    assert sleeps == [0.25]


def test_transient_failures_back_off_linearly_then_succeed(gateway, collector):
    gateway.fail_next_create()
    gateway.fail_next_create()
    sleeps: list = []
    adapter = _adapter(gateway, collector, sleeps=sleeps, max_attempts=3, retry_backoff_seconds=1)

    authorization = adapter.authorize_payment(2500, "usd", METADATA)

    assert authorization.status == PaymentAuthorizationStatus.AUTHORIZED
    assert sleeps == [1, 2]
    assert gateway.call_count("create_intent") == 3


def test_exhausted_retries_raise_gateway_unavailable(gateway, collector):
    for _ in range(3):
        gateway.fail_next_create()
    adapter = _adapter(gateway, collector, max_attempts=3)

    with pytest.raises(GatewayUnavailableError) as exc_info:
        adapter.authorize_payment(2500, "usd", METADATA)

    assert exc_info.value.retryable is True
    assert exc_info.value.details["attempts"] == 3
    assert gateway.intents == {}
    assert collector.secrets == []


def test_non_retryable_gateway_error_stops_immediately(gateway, collector):
    gateway.fail_next_create(
        PaymentGatewayError("invalid currency", retryable=False, status_code=400)
    )
    adapter = _adapter(gateway, collector, max_attempts=3)

    with pytest.raises(GatewayUnavailableError) as exc_info:
        adapter.authorize_payment(2500, "usd", METADATA)

    assert exc_info.value.retryable is False
    assert gateway.call_count("create_intent") == 1


def test_declined_payment_raises_with_decline_code(gateway, make_collector):
    collector = make_collector(PaymentAuthorizationStatus.DECLINED, decline_code="insufficient_funds")
    adapter = _adapter(gateway, collector)

    with pytest.raises(PaymentDeclinedError) as exc_info:
        adapter.authorize_payment(2500, "usd", METADATA)

    assert exc_info.value.details["decline_code"] == "insufficient_funds"
    assert exc_info.value.retryable is True


def test_cancelled_confirmation_raises_payment_cancelled(gateway, make_collector):
    adapter = _adapter(gateway, make_collector(PaymentAuthorizationStatus.CANCELLED))

    with pytest.raises(PaymentCancelledError) as exc_info:
        adapter.authorize_payment(2500, "usd", METADATA)

    payment_ref = exc_info.value.details["payment_ref"]
    assert gateway.intents[payment_ref].status == "canceled"


def test_matching_intent_hint_is_adopted_even_when_already_paid(gateway, collector):
    paid = gateway.create_intent(amount=2500, currency="usd", metadata=METADATA)
    gateway.set_status(paid.id, "succeeded")
    adapter = _adapter(gateway, collector)

    intent = adapter.create_intent(2500, "usd", METADATA, intent_id=paid.id)

    assert intent.id == paid.id
    assert gateway.call_count("create_intent") == 1


def test_intent_hint_for_another_client_is_ignored(gateway, collector):
    other = gateway.create_intent(
        amount=2500, currency="usd", metadata={**METADATA, "client_id": "someone-else"}
    )
    adapter = _adapter(gateway, collector)

    intent = adapter.create_intent(2500, "usd", METADATA, intent_id=other.id)

    assert intent.id != other.id
    assert intent.metadata["client_id"] == "client-1"


def test_unknown_intent_hint_falls_back_to_create(gateway, collector):
    adapter = _adapter(gateway, collector)

    intent = adapter.create_intent(2500, "usd", METADATA, intent_id="pi_missing")

    assert intent.id in gateway.intents


def test_cancel_open_intent(gateway, collector):
    open_intent = gateway.create_intent(amount=2500, currency="usd", metadata=METADATA)
    adapter = _adapter(gateway, collector)

    cancelled = adapter.cancel_open_intent(2500, "usd", METADATA)

    assert cancelled is not None
    assert cancelled.id == open_intent.id
    assert gateway.intents[open_intent.id].status == "canceled"
    assert adapter.cancel_open_intent(2500, "usd", METADATA) is None


def test_cancel_open_intent_cancels_every_open_intent_for_the_class(gateway, collector):
    first = gateway.create_intent(amount=2500, currency="usd", metadata=METADATA)
    second = gateway.create_intent(
        amount=2500, currency="usd", metadata={**METADATA, "attempt_id": "attempt-2"}
    )
    adapter = _adapter(gateway, collector)

    cancelled = adapter.cancel_open_intent(
        2500, "usd", {"class_id": "class-1", "client_id": "client-1"}
    )

    assert cancelled.id == first.id
    assert gateway.intents[first.id].status == "canceled"
    assert gateway.intents[second.id].status == "canceled"
    assert gateway.call_count("cancel_intent") == 2


def test_cancel_open_intent_stops_when_search_returns_a_cancelled_intent(gateway, collector):
    open_intent = gateway.create_intent(amount=2500, currency="usd", metadata=METADATA)
    adapter = _adapter(gateway, collector)

    with patch.object(gateway, "find_open_intent", return_value=open_intent):
        cancelled = adapter.cancel_open_intent(2500, "usd", METADATA)

    assert cancelled.id == open_intent.id
    assert gateway.call_count("cancel_intent") == 1


def test_capture_requires_held_funds(collector):
    gateway = FakePaymentGateway()
    held = gateway.create_intent(amount=2500, currency="usd", metadata=METADATA)
    gateway.set_status(held.id, "requires_capture")
    adapter = _adapter(gateway, collector)

    captured = adapter.capture_payment(held.id)
    assert captured.status == "succeeded"

    with pytest.raises(GatewayUnavailableError) as exc_info:
        adapter.capture_payment(held.id)
    assert exc_info.value.details["payment_ref"] == held.id


def test_idempotency_key_needs_attempt_id():
    assert booking_intent_idempotency_key({"class_id": "c", "client_id": "u"}) is None
    assert booking_intent_idempotency_key(METADATA) == "booking-intent:client-1:class-1:attempt-1"
