"""
Authentication and authorization dependencies for FastAPI.

Every request resolves the caller to an ``Actor``: the bearer token names
the user, the profile row is re-read and the access tier re-derived, so a
change to subscription or role takes effect on the next request.
"""

import logging
from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends, Request, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.database import get_session
from licitadesk.core.exceptions import AuthenticationError
from licitadesk.core.security import (
    SecurityError,
    decode_token,
    get_user_id_from_token,
)
from licitadesk.services import access_service
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing credentials are reported as our own 401
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; overridden in tests."""
    async for session in get_session():
        yield session


def get_services(request: Request) -> ServiceRegistry:
    return request.app.state.services


def get_ws_services(websocket: WebSocket) -> ServiceRegistry:
    return websocket.app.state.services


def user_id_from_token(token: str) -> UUID:
    """Decode a bearer token into the user id, mapping failures to 401."""
    try:
        payload = decode_token(token)
        return get_user_id_from_token(payload)
    except SecurityError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise AuthenticationError(str(e)) from e


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
    services: ServiceRegistry = Depends(get_services),
) -> Actor:
    """Get the authenticated caller with a freshly derived access state.

    Raises:
        AuthenticationError: If the token is missing, expired or invalid
        StaleIdentityError: If the profile behind the token no longer exists
    """
    if credentials is None:
        raise AuthenticationError()
    user_id = user_id_from_token(credentials.credentials)
    return await services.access.load_actor(db, user_id)


async def require_member_area(actor: Actor = Depends(get_current_actor)) -> Actor:
    return access_service.require_member_area(actor)


async def require_full_access(actor: Actor = Depends(get_current_actor)) -> Actor:
    return access_service.require_full_access(actor)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    return access_service.require_admin(actor)
