# backend/coachwire/api/dependencies/auth.py
import asyncio
import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ...auth import decode_access_token
from ...core.enums import RoleName
from ...core.exceptions import DomainException, ForbiddenException, UnauthorizedException
from ...principal import CallerIdentity
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _resolve_caller(token: str, db: Session) -> CallerIdentity:
    payload = decode_access_token(token)
    user_id = str(payload["sub"])
    profiles = RepositoryFactory.create_profile_repository(db)
    # Release the read before the request's booking work starts.
    with profiles.transaction():
        role = profiles.get_role(user_id)
    if role is None:
        raise ForbiddenException("No profile for this account", code="PROFILE_NOT_FOUND")
    return CallerIdentity(user_id=user_id, role=RoleName(role))


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> CallerIdentity:
    """Resolve the authenticated caller from the bearer token."""
    try:
        if credentials is None or not credentials.credentials:
            raise UnauthorizedException("Not authenticated", code="NOT_AUTHENTICATED")
        return await asyncio.to_thread(_resolve_caller, credentials.credentials, db)
    except DomainException as exc:
        http_exc: HTTPException = exc.to_http_exception()
        raise http_exc
