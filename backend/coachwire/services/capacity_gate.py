# backend/coachwire/services/capacity_gate.py
"""
Capacity Gate

Advisory availability check used before any payment is attempted. The answer
can be stale by the time the booking is written; BookingRecorder re-checks
under a lock and is the only authority on capacity.
"""

from dataclasses import dataclass
import logging

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Availability:
    class_id: str
    capacity: int
    confirmed: int

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.confirmed, 0)

    @property
    def available(self) -> bool:
        return self.remaining > 0


class CapacityGate(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.class_repository = RepositoryFactory.create_class_offering_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("check_availability")
    def check_availability(self, class_id: str) -> Availability:
        """
        Report remaining spots for a class.

        Pure read; does not commit or hold locks beyond the caller's transaction.

        Raises:
            NotFoundError: the class does not exist
        """
        class_offering = self.class_repository.get_by_id(class_id)
        if class_offering is None:
            raise NotFoundError(class_id)

        confirmed = self.booking_repository.count_confirmed(class_id)
        return Availability(
            class_id=class_id,
            capacity=int(class_offering.capacity),
            confirmed=confirmed,
        )
