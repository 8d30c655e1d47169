# backend/coachwire/core/exceptions.py
"""
Domain-specific exceptions for the CoachWire booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every failure of a booking attempt is a BookingError so callers can
branch on a single type and on its ``retryable`` flag.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def http_headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
            headers=self.http_headers(),
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def http_headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
            headers=self.http_headers(),
        )


# Booking errors


class BookingError(DomainException):
    """Mixin-style base shared by every failure of a booking attempt."""

    retryable: bool = False


class NotFoundError(BookingError, NotFoundException):
    """Raised when the class being booked does not exist."""

    def __init__(self, class_id: str) -> None:
        super().__init__(
            message="Class not found",
            code="CLASS_NOT_FOUND",
            details={"class_id": class_id},
        )


class SoldOutError(BookingError, ConflictException):
    """Raised by the pre-check when no spots remain."""

    def __init__(self, class_id: str, capacity: int) -> None:
        super().__init__(
            message="This class is fully booked",
            code="CLASS_SOLD_OUT",
            details={"class_id": class_id, "capacity": capacity},
        )


class InvalidAmountError(BookingError, ValidationException):
    """Raised when a payment amount is zero or negative."""

    def __init__(self, amount: int) -> None:
        super().__init__(
            message="Payment amount must be greater than zero",
            code="INVALID_AMOUNT",
            details={"amount": amount},
        )


class GatewayUnavailableError(BookingError, ServiceException):
    """Raised when the payment gateway cannot be reached or keeps failing."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(
        self,
        message: str = "Payment provider is temporarily unavailable. Please retry.",
        *,
        retry_after_seconds: int = 5,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message=message, code="GATEWAY_UNAVAILABLE", details=details or {})

    def http_headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after_seconds)}


class PaymentDeclinedError(BookingError, BusinessRuleException):
    """Raised when the payer's instrument was declined."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
    retryable = True

    def __init__(self, payment_ref: str, decline_code: Optional[str] = None) -> None:
        super().__init__(
            message="Your payment was declined",
            code="PAYMENT_DECLINED",
            details={"payment_ref": payment_ref, "decline_code": decline_code},
        )


class PaymentCancelledError(BookingError, BusinessRuleException):
    """Raised when the payer abandoned or cancelled the confirmation step."""

    retryable = True

    def __init__(self, payment_ref: str) -> None:
        super().__init__(
            message="Payment was cancelled",
            code="PAYMENT_CANCELLED",
            details={"payment_ref": payment_ref},
        )


class CapacityExceededError(BookingError, ConflictException):
    """Raised by the recorder when the class filled up before the write."""

    def __init__(self, class_id: str, capacity: Optional[int] = None) -> None:
        super().__init__(
            message="This class filled up before your booking could be saved",
            code="CAPACITY_EXCEEDED",
            details={"class_id": class_id, "capacity": capacity},
        )


class DuplicateBookingError(BookingError, ConflictException):
    """Raised when the client already holds a confirmed booking for the class."""

    def __init__(self, class_id: str, client_id: str) -> None:
        super().__init__(
            message="You have already booked this class",
            code="DUPLICATE_BOOKING",
            details={"class_id": class_id, "client_id": client_id},
        )


class PaymentNeedsReversal(BookingError, ConflictException):
    """
    Payment was authorized but no confirmed booking could be recorded.

    Carries everything an operator needs to reverse the charge by hand.
    """

    def __init__(
        self,
        *,
        payment_ref: str,
        reason: str,
        class_id: str,
        client_id: str,
        attempt_id: str,
        booking_id: Optional[str] = None,
    ) -> None:
        self.payment_ref = payment_ref
        self.reason = reason
        self.class_id = class_id
        self.client_id = client_id
        self.attempt_id = attempt_id
        self.booking_id = booking_id
        super().__init__(
            message=(
                "Your payment went through but the booking could not be completed. "
                "Our team has been notified and will reverse the charge."
            ),
            code="PAYMENT_NEEDS_REVERSAL",
            details={
                "payment_ref": payment_ref,
                "reason": reason,
                "class_id": class_id,
                "client_id": client_id,
                "attempt_id": attempt_id,
                "booking_id": booking_id,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
