# backend/coachwire/services/booking_orchestrator.py
"""
Booking Orchestrator

Runs one booking attempt end to end:

    availability pre-check -> payment authorization -> booking write

No database transaction is held open while the gateway is being called. If
payment was authorized but the booking cannot be written, the attempt ends in
PaymentNeedsReversal: the charge is recorded on a failed booking row and an
operator is alerted. Nothing is refunded automatically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import CaptureMethod
from ..core.exceptions import (
    BookingError,
    CapacityExceededError,
    DuplicateBookingError,
    ForbiddenException,
    GatewayUnavailableError,
    NotFoundError,
    PaymentNeedsReversal,
    SoldOutError,
)
from ..core.ulid_helper import generate_ulid
from ..models.booking import Booking
from ..models.class_offering import ClassOffering
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import CallerIdentity
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_recorder import BookingRecorder
from .capacity_gate import Availability, CapacityGate
from .ops_alerts import OpsAlertService
from .payment_intent_adapter import PaymentIntentAdapter

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    STARTED = "started"
    AVAILABILITY_CHECKED = "availability_checked"
    PAYMENT_AUTHORIZED = "payment_authorized"
    RECORDED = "recorded"
    ABORTED = "aborted"


_TRANSITIONS: Dict[AttemptState, frozenset] = {
    AttemptState.STARTED: frozenset({AttemptState.AVAILABILITY_CHECKED, AttemptState.ABORTED}),
    AttemptState.AVAILABILITY_CHECKED: frozenset(
        {AttemptState.PAYMENT_AUTHORIZED, AttemptState.ABORTED}
    ),
    AttemptState.PAYMENT_AUTHORIZED: frozenset({AttemptState.RECORDED, AttemptState.ABORTED}),
    AttemptState.RECORDED: frozenset(),
    AttemptState.ABORTED: frozenset(),
}


class InvalidAttemptTransition(RuntimeError):
    pass


@dataclass
class BookingAttempt:
    """Per-attempt state; one instance per call to ``book_class``."""

    class_id: str
    client_id: str
    attempt_id: str = field(default_factory=generate_ulid)
    state: AttemptState = AttemptState.STARTED
    abort_reason: Optional[str] = None
    payment_ref: Optional[str] = None
    booking_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def advance(self, new_state: AttemptState) -> None:
        if new_state == AttemptState.ABORTED:
            raise InvalidAttemptTransition("use abort() to end an attempt early")
        self._move(new_state)

    def abort(self, reason: str) -> None:
        self._move(AttemptState.ABORTED)
        self.abort_reason = reason

    def _move(self, new_state: AttemptState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidAttemptTransition(
                f"cannot move booking attempt from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def metadata(self) -> Dict[str, str]:
        return {
            "class_id": self.class_id,
            "client_id": self.client_id,
            "attempt_id": self.attempt_id,
        }


@dataclass(frozen=True)
class PreparedPayment:
    """What the payment sheet needs to present an intent to the payer."""

    intent_id: str
    client_secret: str
    amount: int
    currency: str


class BookingOrchestrator(BaseService):
    def __init__(
        self,
        db: Session,
        payment_adapter: PaymentIntentAdapter,
        *,
        alert_service: Optional[OpsAlertService] = None,
        currency: Optional[str] = None,
        capture_method: Optional[str] = None,
    ):
        super().__init__(db)
        self.payment_adapter = payment_adapter
        self.alert_service = alert_service or OpsAlertService()
        self.currency = (currency or settings.stripe_currency).lower()
        self.capture_method = CaptureMethod(capture_method or settings.stripe_capture_method)
        self.capacity_gate = CapacityGate(db)
        self.recorder = BookingRecorder(db)
        self.class_repository = RepositoryFactory.create_class_offering_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("book_class")
    def book_class(
        self,
        class_id: str,
        caller: CallerIdentity,
        *,
        payment_intent_id: Optional[str] = None,
    ) -> Booking:
        """
        Book one spot in a class for the calling client.

        ``payment_intent_id`` optionally names the intent that was presented to
        the payer by ``prepare_payment``; it is reused when it still matches.

        Raises:
            BookingError: any failure of the attempt; see the error's ``code``
        """
        self._require_client(caller)
        attempt = BookingAttempt(class_id=class_id, client_id=caller.user_id)
        self._log_transition(attempt)

        try:
            amount = self._precheck(attempt)
            attempt.advance(AttemptState.AVAILABILITY_CHECKED)
            self._log_transition(attempt)

            authorization = self.payment_adapter.authorize_payment(
                amount,
                self.currency,
                attempt.metadata(),
                intent_id=self._usable_intent_hint(payment_intent_id),
            )
        except BookingError as exc:
            self._abort(attempt, exc)
            raise

        attempt.payment_ref = authorization.payment_ref
        attempt.advance(AttemptState.PAYMENT_AUTHORIZED)
        self._log_transition(attempt)

        try:
            booking = self.recorder.record_confirmed_booking(
                class_id, caller.user_id, authorization.payment_ref
            )
        except Exception as exc:
            # Concurrent attempts by one client share the open intent; if the
            # winner already recorded this payment nothing is orphaned.
            if self._payment_recorded(attempt):
                duplicate = (
                    exc
                    if isinstance(exc, DuplicateBookingError)
                    else DuplicateBookingError(class_id, caller.user_id)
                )
                self._abort(attempt, duplicate)
                if duplicate is exc:
                    raise
                raise duplicate from exc
            # Money has moved; every other failure from here on needs an operator.
            raise self._needs_reversal(attempt, exc) from exc

        attempt.booking_id = booking.id
        attempt.advance(AttemptState.RECORDED)
        self._log_transition(attempt)
        prometheus_metrics.record_booking_outcome("recorded")

        if self.capture_method == CaptureMethod.MANUAL:
            self._capture(attempt)
        return booking

    @BaseService.measure_operation("prepare_payment")
    def prepare_payment(self, class_id: str, caller: CallerIdentity) -> PreparedPayment:
        """Run the pre-checks and return an intent for the payment sheet."""
        self._require_client(caller)
        attempt = BookingAttempt(class_id=class_id, client_id=caller.user_id)
        amount = self._precheck(attempt)
        intent = self.payment_adapter.create_intent(amount, self.currency, attempt.metadata())
        return PreparedPayment(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
        )

    @BaseService.measure_operation("abandon_payment")
    def abandon_payment(self, class_id: str, caller: CallerIdentity) -> bool:
        """Cancel the caller's open intent for a class. Returns False when none was open."""
        self._require_client(caller)
        with self.transaction():
            class_offering = self._get_class(class_id)
            amount = class_offering.price_minor_units
        cancelled = self.payment_adapter.cancel_open_intent(
            amount, self.currency, {"class_id": class_id, "client_id": caller.user_id}
        )
        return cancelled is not None

    def get_availability(self, class_id: str) -> Availability:
        with self.transaction():
            return self.capacity_gate.check_availability(class_id)

    def get_booking(self, class_id: str, caller: CallerIdentity) -> Optional[Booking]:
        with self.transaction():
            return self.booking_repository.get_confirmed_for_client(class_id, caller.user_id)

    # Internals

    def _require_client(self, caller: CallerIdentity) -> None:
        if not caller.is_client:
            raise ForbiddenException(
                "Only clients can book classes",
                code="CLIENT_ROLE_REQUIRED",
                details={"role": caller.role.value},
            )

    def _get_class(self, class_id: str) -> ClassOffering:
        class_offering = self.class_repository.get_by_id(class_id)
        if class_offering is None:
            raise NotFoundError(class_id)
        return class_offering

    def _precheck(self, attempt: BookingAttempt) -> int:
        """Advisory checks before any money moves. Returns the price in minor units."""
        with self.transaction():
            class_offering = self._get_class(attempt.class_id)
            if self.booking_repository.has_confirmed_booking(attempt.class_id, attempt.client_id):
                raise DuplicateBookingError(attempt.class_id, attempt.client_id)
            availability = self.capacity_gate.check_availability(attempt.class_id)
            if not availability.available:
                raise SoldOutError(attempt.class_id, availability.capacity)
            return class_offering.price_minor_units

    def _usable_intent_hint(self, payment_intent_id: Optional[str]) -> Optional[str]:
        if not payment_intent_id:
            return None
        with self.transaction():
            existing = self.booking_repository.find_by_payment_ref(payment_intent_id)
        if existing is not None:
            self.logger.warning(
                "Payment intent already belongs to a booking; not reusing it",
                extra={"payment_ref": payment_intent_id, "booking_id": existing.id},
            )
            return None
        return payment_intent_id

    def _abort(self, attempt: BookingAttempt, exc: BookingError) -> None:
        attempt.abort(exc.code)
        # Payer outcomes are routine; gateway faults are infrastructure problems.
        level = logging.WARNING if isinstance(exc, GatewayUnavailableError) else logging.INFO
        self.logger.log(
            level,
            f"Booking attempt {attempt.attempt_id} aborted: {exc.code}",
            extra={
                "attempt_id": attempt.attempt_id,
                "class_id": attempt.class_id,
                "client_id": attempt.client_id,
                "code": exc.code,
            },
        )
        prometheus_metrics.record_booking_outcome(exc.code.lower())

    def _payment_recorded(self, attempt: BookingAttempt) -> bool:
        try:
            with self.transaction():
                existing = self.booking_repository.get_confirmed_for_client(
                    attempt.class_id, attempt.client_id
                )
        except Exception:
            self.logger.error(
                f"Could not check whether payment {attempt.payment_ref} was recorded",
                exc_info=True,
            )
            return False
        return existing is not None and existing.stripe_payment_id == attempt.payment_ref

    def _needs_reversal(self, attempt: BookingAttempt, exc: Exception) -> PaymentNeedsReversal:
        if isinstance(exc, CapacityExceededError):
            reason = "capacity_exceeded"
        elif isinstance(exc, DuplicateBookingError):
            reason = "duplicate_booking"
        else:
            reason = "persistence_error"
        payment_ref = attempt.payment_ref or ""

        failed_booking_id = None
        try:
            failed = self.recorder.record_failed_booking(
                attempt.class_id, attempt.client_id, payment_ref, reason
            )
            failed_booking_id = failed.id
        except Exception as record_exc:
            self.logger.error(
                f"Could not record failed booking for payment {payment_ref}: {record_exc}",
                exc_info=True,
            )

        attempt.abort(reason)
        error = PaymentNeedsReversal(
            payment_ref=payment_ref,
            reason=reason,
            class_id=attempt.class_id,
            client_id=attempt.client_id,
            attempt_id=attempt.attempt_id,
            booking_id=failed_booking_id,
        )
        self.alert_service.payment_needs_reversal(error, cause=exc)
        prometheus_metrics.record_booking_outcome("needs_reversal")
        return error

    def _capture(self, attempt: BookingAttempt) -> None:
        payment_ref = attempt.payment_ref or ""
        try:
            self.payment_adapter.capture_payment(payment_ref)
        except BookingError as exc:
            # The seat is already confirmed; the held funds need an operator.
            self.alert_service.capture_failed(
                payment_ref=payment_ref, booking_id=attempt.booking_id or "", error=exc
            )

    def _log_transition(self, attempt: BookingAttempt) -> None:
        self.logger.info(
            f"Booking attempt {attempt.attempt_id} -> {attempt.state.value}",
            extra={
                "attempt_id": attempt.attempt_id,
                "class_id": attempt.class_id,
                "client_id": attempt.client_id,
                "state": attempt.state.value,
                "payment_ref": attempt.payment_ref,
            },
        )
