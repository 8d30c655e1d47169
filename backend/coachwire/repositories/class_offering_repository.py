# backend/coachwire/repositories/class_offering_repository.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.class_offering import ClassOffering
from .base_repository import BaseRepository


class ClassOfferingRepository(BaseRepository[ClassOffering]):
    """Reads classes, including the row lock taken before a booking is written."""

    def __init__(self, db: Session):
        super().__init__(db, ClassOffering)

    def lock_for_booking(self, class_id: str) -> Optional[ClassOffering]:
        """
        Load the class with a row lock held until the surrounding transaction ends.

        PostgreSQL renders ``FOR UPDATE``; SQLite has no row locks and relies on
        the engine's ``BEGIN IMMEDIATE`` transactions instead.
        """
        stmt = (
            select(ClassOffering)
            .where(ClassOffering.id == class_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        try:
            return self.db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking class {class_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock class: {str(e)}")
