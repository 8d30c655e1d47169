# backend/coachwire/auth.py
"""
Bearer token verification for identity provider JWTs.

CoachWire never issues credentials for end users. It verifies the provider's
signature, takes the ``sub`` claim as the caller id, and looks the role up on
the caller's profile.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

import jwt
from jwt import PyJWTError
from pydantic import SecretStr

from .core.config import settings
from .core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)


def _secret_value(secret: SecretStr | str) -> str:
    return secret.get_secret_value() if isinstance(secret, SecretStr) else secret


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature, expiry and (when configured) audience; return the claims."""
    secret = _secret_value(settings.jwt_secret)
    try:
        if settings.jwt_audience:
            payload_raw = jwt.decode(
                token,
                secret,
                algorithms=[settings.jwt_algorithm],
                audience=settings.jwt_audience,
            )
        else:
            payload_raw = jwt.decode(
                token,
                secret,
                algorithms=[settings.jwt_algorithm],
                options={"verify_aud": False},
            )
    except PyJWTError as e:
        logger.info(f"JWT validation error: {str(e)}")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN")

    payload = cast(Dict[str, Any], payload_raw)
    if not payload.get("sub"):
        raise UnauthorizedException("Token has no subject", code="INVALID_TOKEN")
    return payload


def create_access_token(
    subject: str,
    *,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Mint a token the way the identity provider does; used by local tooling and tests."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode: Dict[str, Any] = {"sub": subject, "exp": expire}
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    to_encode.update(extra_claims or {})
    return cast(
        str,
        jwt.encode(to_encode, _secret_value(settings.jwt_secret), algorithm=settings.jwt_algorithm),
    )
