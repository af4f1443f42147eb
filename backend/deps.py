"""
Shared FastAPI dependencies.

Routers import from here for the DB session, auth guards and pagination so
the guard logic lives in a single place.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from domain.enums import Role
from domain.errors import PermissionDeniedError, UnauthorizedError
from middleware.auth import decode_access_token, parse_bearer_token


class PageParams(TypedDict):
    page: int
    limit: int
    offset: int


def page_params(default_limit: int = 20):
    """Dependency factory for ?page=&limit= pagination."""
    def _params(
        page: int = Query(1, ge=1, le=100_000),
        limit: int = Query(default_limit, ge=1, le=200),
    ) -> PageParams:
        return {"page": page, "limit": limit, "offset": (page - 1) * limit}

    return _params


async def _user_from_token(db: AsyncSession, token: str) -> User:
    payload = decode_access_token(token)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Not authorized, token failed")

    user = await db.get(User, user_id)
    if not user:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise UnauthorizedError("Account is deactivated")
    return user


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Require `Authorization: Bearer <jwt>` for an existing, active user."""
    token = parse_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Not authorized, no token")
    return await _user_from_token(db, token)


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of 401."""
    token = parse_bearer_token(authorization)
    if not token:
        return None
    return await _user_from_token(db, token)


def require_roles(*roles: Role | str):
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        router = APIRouter(dependencies=[Depends(require_roles(Role.ADMIN))])
    """
    allowed = {r.value if isinstance(r, Role) else r for r in roles}

    async def _require(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError(
                f"User role {user.role} is not authorized to access this route"
            )
        return user

    return _require


require_admin = require_roles(Role.ADMIN)
require_delivery = require_roles(Role.DELIVERY)
