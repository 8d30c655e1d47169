# backend/coachwire/services/booking_recorder.py
"""
Booking Recorder

Writes the reservation that an authorized payment paid for. Everything here
happens in one short transaction that holds the class row lock, so concurrent
recorders for the same class are serialized and the confirmed count can never
pass capacity.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    CapacityExceededError,
    DuplicateBookingError,
    NotFoundError,
    ValidationException,
)
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class BookingRecorder(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.class_repository = RepositoryFactory.create_class_offering_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("record_confirmed_booking")
    def record_confirmed_booking(self, class_id: str, client_id: str, payment_ref: str) -> Booking:
        """
        Persist a confirmed booking tied to ``payment_ref``.

        Capacity and uniqueness are re-evaluated inside the transaction; the
        result of any earlier availability check is not trusted.

        Raises:
            NotFoundError: the class does not exist
            DuplicateBookingError: the client already holds a confirmed booking
            CapacityExceededError: no spots remained at write time
        """
        if not payment_ref:
            raise ValidationException(
                "A payment reference is required to confirm a booking",
                code="PAYMENT_REF_REQUIRED",
            )

        with self.transaction():
            class_offering = self.class_repository.lock_for_booking(class_id)
            if class_offering is None:
                raise NotFoundError(class_id)
            capacity = int(class_offering.capacity)

            if self.booking_repository.has_confirmed_booking(class_id, client_id):
                raise DuplicateBookingError(class_id, client_id)

            confirmed = self.booking_repository.count_confirmed(class_id)
            if confirmed >= capacity:
                raise CapacityExceededError(class_id, capacity)

            try:
                booking = self.booking_repository.insert_confirmed_if_open(
                    class_id, client_id, payment_ref
                )
            except IntegrityError as exc:
                raise DuplicateBookingError(class_id, client_id) from exc
            if booking is None:
                raise CapacityExceededError(class_id, capacity)

        self.log_operation(
            "record_confirmed_booking",
            booking_id=booking.id,
            class_id=class_id,
            client_id=client_id,
            payment_ref=payment_ref,
        )
        return booking

    @BaseService.measure_operation("record_failed_booking")
    def record_failed_booking(
        self, class_id: str, client_id: str, payment_ref: str, reason: str
    ) -> Booking:
        """Keep a durable record of a charge that did not become a reservation."""
        with self.transaction():
            booking = self.booking_repository.create_failed_booking(
                class_id, client_id, payment_ref, reason
            )
        logger.warning(
            f"Recorded failed booking {booking.id} for payment {payment_ref}: {reason}"
        )
        return booking
