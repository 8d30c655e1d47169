import logging
from unittest.mock import patch

from coachwire.core.exceptions import GatewayUnavailableError, PaymentNeedsReversal
from coachwire.monitoring.prometheus_metrics import REGISTRY
from coachwire.services.ops_alerts import OpsAlertService


def _reversal() -> PaymentNeedsReversal:
    return PaymentNeedsReversal(
        payment_ref="pi_alert",
        reason="capacity_exceeded",
        class_id="class-1",
        client_id="client-1",
        attempt_id="attempt-1",
        booking_id="booking-1",
    )


def _reversal_count(reason: str) -> float:
    return REGISTRY.get_sample_value("coachwire_payment_reversals_total", {"reason": reason}) or 0.0


@patch("coachwire.services.ops_alerts.sentry_sdk.capture_message")
def test_reversal_alert_logs_counts_and_reports(mock_capture, caplog):
    before = _reversal_count("capacity_exceeded")

    with caplog.at_level(logging.CRITICAL, logger="coachwire.services.ops_alerts"):
        OpsAlertService().payment_needs_reversal(_reversal(), cause=ValueError("boom"))

    assert any("pi_alert" in record.getMessage() for record in caplog.records)
    assert _reversal_count("capacity_exceeded") == before + 1
    mock_capture.assert_called_once()
    kwargs = mock_capture.call_args.kwargs
    assert kwargs["level"] == "fatal"
    assert kwargs["extras"]["payment_ref"] == "pi_alert"
    assert kwargs["extras"]["cause"] == "ValueError"


@patch("coachwire.services.ops_alerts.sentry_sdk.capture_message")
def test_capture_failure_alert_names_booking(mock_capture, caplog):
    with caplog.at_level(logging.ERROR, logger="coachwire.services.ops_alerts"):
        OpsAlertService().capture_failed(
            payment_ref="pi_held", booking_id="booking-9", error=GatewayUnavailableError()
        )

    assert any("booking-9" in record.getMessage() for record in caplog.records)
    assert mock_capture.call_args.kwargs["extras"]["code"] == "GATEWAY_UNAVAILABLE"
