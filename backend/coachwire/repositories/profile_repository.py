# backend/coachwire/repositories/profile_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.profile import Profile
from .base_repository import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    def __init__(self, db: Session):
        super().__init__(db, Profile)

    def get_role(self, user_id: str) -> Optional[str]:
        profile = self.get_by_id(user_id)
        return profile.role if profile is not None else None
