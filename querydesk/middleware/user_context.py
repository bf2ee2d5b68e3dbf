"""
User context middleware
Reads the caller's identity from headers set by the upstream gateway
"""
import os
from typing import List, Optional

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from ..utils.logger import get_logger

logger = get_logger(__name__)

ADMIN_ROLE = os.getenv("ADMIN_ROLE", "Admin")


def _parse_roles(header: Optional[str]) -> List[str]:
    return [role.strip() for role in (header or "").split(",") if role.strip()]


class UserContextMiddleware(BaseHTTPMiddleware):
    """
    Sets request.state.user_id, request.state.username and request.state.roles

    The gateway authenticates the caller and injects X-User-ID, X-Username
    and X-User-Roles (comma separated). Requests without X-User-ID are
    anonymous.
    """

    async def dispatch(self, request: Request, call_next):
        user_id = (request.headers.get("X-User-ID") or "").strip() or None
        request.state.user_id = user_id
        request.state.username = request.headers.get("X-Username")
        request.state.roles = _parse_roles(request.headers.get("X-User-Roles"))

        logger.debug(
            f"Request: {request.method} {request.url.path} | User: {user_id or 'anonymous'} "
            f"| Roles: {request.state.roles}"
        )

        response = await call_next(request)
        return response


def get_current_user_id(request: Request) -> str:
    """
    Identity of the caller

    Raises:
        HTTPException: 401 when the request carries no X-User-ID
    """
    user_id: Optional[str] = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header"
        )
    return user_id


def require_admin(request: Request) -> str:
    """
    Identity of the caller, who must hold the admin role

    Raises:
        HTTPException: 401 without X-User-ID, 403 without the admin role
    """
    user_id = get_current_user_id(request)
    roles = getattr(request.state, "roles", None) or []
    if ADMIN_ROLE.casefold() not in {role.casefold() for role in roles}:
        logger.warning(f"Admin role required: user_id={user_id}, path={request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return user_id
