"""
JWT verification.

Sign-in and session mechanics live in the external identity provider. This
module only verifies bearer tokens and extracts the subject; token creation
is kept for service-to-service calls and local development.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from .config import settings


class SecurityError(Exception):
    """Base security exception."""


class TokenExpiredError(SecurityError):
    """Token has expired."""


class TokenInvalidError(SecurityError):
    """Token is invalid."""


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed access token whose subject is the given profile id."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=12))
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": str(uuid4()),
        "iss": settings.security.jwt_issuer,
        "aud": settings.security.jwt_audience,
    }
    try:
        return jwt.encode(
            payload,
            settings.security.jwt_secret_key_property,
            algorithm=settings.security.algorithm,
        )
    except Exception as e:
        raise SecurityError(f"Failed to create access token: {e}") from e


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is invalid
    """
    try:
        return jwt.decode(
            token,
            settings.security.jwt_secret_key_property,
            algorithms=[settings.security.algorithm],
            audience=settings.security.jwt_audience,
            issuer=settings.security.jwt_issuer,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")


def get_user_id_from_token(payload: Dict[str, Any]) -> UUID:
    """Extract the profile id from the subject claim."""
    sub = payload.get("sub")
    if not sub:
        raise TokenInvalidError("User ID missing from token")
    try:
        return UUID(str(sub))
    except ValueError:
        raise TokenInvalidError("User ID in token is not a UUID")
