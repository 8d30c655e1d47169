"""
Prometheus metrics module for CoachWire.

Service timings come from the @measure_operation decorator; booking outcome
counters are incremented by the orchestrator and the ops alert service.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "coachwire_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 60.0),
)

service_operations_total = Counter(
    "coachwire_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "coachwire_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_attempts_total = Counter(
    "coachwire_booking_attempts_total",
    "Booking attempts by final outcome",
    ["outcome"],  # recorded | sold_out | declined | cancelled | ...
    registry=REGISTRY,
)

payment_reversals_total = Counter(
    "coachwire_payment_reversals_total",
    "Authorized payments that could not be turned into a booking",
    ["reason"],
    registry=REGISTRY,
)

gateway_errors_total = Counter(
    "coachwire_gateway_errors_total",
    "Payment gateway call failures",
    ["operation", "retryable"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Helpers for recording metrics against the CoachWire registry."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_outcome(outcome: str) -> None:
        booking_attempts_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_payment_reversal(reason: str) -> None:
        payment_reversals_total.labels(reason=reason).inc()

    @staticmethod
    def record_gateway_error(operation: str, retryable: bool) -> None:
        gateway_errors_total.labels(operation=operation, retryable=str(retryable).lower()).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
