import logging
from typing import Optional

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import AUTH_SERVICE_URL, AUTH_SESSION_PATH
from .domain.scheduling.types import ADMIN_ROLE, CLIENT_ROLE, Actor
from .exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

# Public booking endpoints accept anonymous callers, so no auto 403
security = HTTPBearer(auto_error=False)


def actor_from_session(payload: dict) -> Optional[Actor]:
    """Build an Actor from the auth service's session payload"""
    user = (payload or {}).get("user") or {}
    user_id = user.get("id")
    if not user_id:
        return None
    return Actor(
        user_id=str(user_id),
        role=(user.get("role") or CLIENT_ROLE).lower(),
        email=(user.get("email") or "").lower(),
    )


async def resolve_session(token: str) -> Optional[Actor]:
    """
    Ask the auth service who owns ``token``.

    Sessions are issued elsewhere; this only resolves them. Returns None for
    unknown/expired tokens or when the auth service can't be reached.
    """
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(
                f"{AUTH_SERVICE_URL}{AUTH_SESSION_PATH}",
                headers={"Authorization": f"Bearer {token}"},
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Auth service unreachable: {str(e)}")
        return None

    if response.status_code != 200:
        logger.debug(f"⚠️ Session lookup rejected: HTTP {response.status_code}")
        return None

    try:
        actor = actor_from_session(response.json())
    except ValueError:
        logger.error("❌ Auth service returned a non-JSON session payload")
        return None

    if actor:
        logger.debug(f"✅ Session resolved: user={actor.user_id} role={actor.role}")
    return actor


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Actor]:
    """The calling user, or None for anonymous callers"""
    if credentials is None or not credentials.credentials:
        return None
    return await resolve_session(credentials.credentials)


async def get_current_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise AuthenticationError("Please sign in to continue")
    return actor


async def get_admin_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role != ADMIN_ROLE:
        raise ForbiddenError("Admin access required")
    return actor
