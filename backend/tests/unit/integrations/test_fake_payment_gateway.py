import pytest

from coachwire.integrations.payment_gateway import FakePaymentGateway, PaymentGatewayError

METADATA = {"class_id": "class-1", "client_id": "client-1"}


def test_same_idempotency_key_returns_same_intent():
    gateway = FakePaymentGateway()

    first = gateway.create_intent(amount=100, currency="usd", metadata=METADATA, idempotency_key="k")
    second = gateway.create_intent(amount=100, currency="usd", metadata=METADATA, idempotency_key="k")

    assert first.id == second.id
    assert len(gateway.intents) == 1


def test_failure_after_commit_still_creates_intent():
    gateway = FakePaymentGateway()
    gateway.fail_next_create(after_commit=True)

    with pytest.raises(PaymentGatewayError):
        gateway.create_intent(amount=100, currency="usd", metadata=METADATA)

    assert len(gateway.intents) == 1


def test_first_retrieve_auto_confirms_once():
    gateway = FakePaymentGateway(auto_confirm_status="requires_capture")
    intent = gateway.create_intent(amount=100, currency="usd", metadata=METADATA)

    assert gateway.retrieve_intent(intent.id).status == "requires_capture"
    gateway.capture_intent(intent.id)
    assert gateway.retrieve_intent(intent.id).status == "succeeded"


def test_paid_intent_cannot_be_cancelled():
    gateway = FakePaymentGateway()
    intent = gateway.create_intent(amount=100, currency="usd", metadata=METADATA)
    gateway.set_status(intent.id, "succeeded")

    with pytest.raises(PaymentGatewayError) as exc_info:
        gateway.cancel_intent(intent.id)
    assert exc_info.value.status_code == 400


def test_unknown_intent_is_404():
    with pytest.raises(PaymentGatewayError) as exc_info:
        FakePaymentGateway().retrieve_intent("pi_nope")
    assert exc_info.value.status_code == 404
