# backend/coachwire/repositories/booking_repository.py
"""
Booking Repository for CoachWire

All confirmed-seat accounting lives here. The conditional insert is the
authoritative capacity check: it only writes a row when, at the moment the
statement runs, the class still has room and the client holds no confirmed
seat.
"""

import logging
from typing import Optional

from sqlalchemy import String, exists, func, insert, literal, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..core.exceptions import RepositoryException
from ..core.ulid_helper import generate_ulid
from ..models.booking import Booking
from ..models.class_offering import ClassOffering
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

CONFIRMED = BookingStatus.CONFIRMED.value


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def count_confirmed(self, class_id: str) -> int:
        """Number of confirmed bookings currently held for a class."""
        stmt = select(func.count(Booking.id)).where(
            Booking.class_id == class_id, Booking.status == CONFIRMED
        )
        try:
            return int(self.db.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting confirmed bookings for {class_id}: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def get_confirmed_for_client(self, class_id: str, client_id: str) -> Optional[Booking]:
        stmt = select(Booking).where(
            Booking.class_id == class_id,
            Booking.client_id == client_id,
            Booking.status == CONFIRMED,
        )
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking for client {client_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")

    def has_confirmed_booking(self, class_id: str, client_id: str) -> bool:
        return self.get_confirmed_for_client(class_id, client_id) is not None

    def insert_confirmed_if_open(
        self, class_id: str, client_id: str, payment_ref: str
    ) -> Optional[Booking]:
        """
        Insert a confirmed booking only if capacity and uniqueness still hold.

        Returns None when the guard rejected the row (class full or duplicate).
        Raises IntegrityError when the partial unique index rejects it.
        """
        booking_id = generate_ulid()
        confirmed_count = (
            select(func.count(Booking.id))
            .where(Booking.class_id == class_id, Booking.status == CONFIRMED)
            .scalar_subquery()
        )
        already_booked = exists().where(
            Booking.class_id == class_id,
            Booking.client_id == client_id,
            Booking.status == CONFIRMED,
        )
        source = select(
            literal(booking_id, String),
            ClassOffering.id,
            literal(client_id, String),
            literal(CONFIRMED, String),
            literal(payment_ref, String),
        ).where(
            ClassOffering.id == class_id,
            ClassOffering.capacity > confirmed_count,
            ~already_booked,
        )
        stmt = insert(Booking.__table__).from_select(
            ["id", "class_id", "client_id", "status", "stripe_payment_id"], source
        )
        try:
            result = self.db.execute(stmt)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting booking for class {class_id}: {str(e)}")
            raise RepositoryException(f"Failed to insert booking: {str(e)}")

        if result.rowcount == 0:
            return None
        return self.db.get(Booking, booking_id)

    def create_failed_booking(
        self, class_id: str, client_id: str, payment_ref: str, reason: str
    ) -> Booking:
        """Record a charge that could not become a reservation."""
        return self.create(
            class_id=class_id,
            client_id=client_id,
            status=BookingStatus.FAILED.value,
            stripe_payment_id=payment_ref,
            failure_reason=reason,
        )

    def find_by_payment_ref(self, payment_ref: str) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.stripe_payment_id == payment_ref)
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking for payment {payment_ref}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")
