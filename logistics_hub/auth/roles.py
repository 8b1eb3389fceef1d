from __future__ import annotations

from dataclasses import dataclass

import sqlalchemy as sa

from logistics_hub.common.db import session_scope
from logistics_hub.common.db_tables import user_roles

ADMIN = "admin"
USER = "user"
ROLES = (ADMIN, USER)

ADMIN_HOME = "/"
USER_HOME = "/user-dashboard"


@dataclass(frozen=True)
class RouteAccess:
    allowed: bool
    redirect_to: str | None = None


def home_route_for(role: str | None) -> str:
    return ADMIN_HOME if role == ADMIN else USER_HOME


def resolve_route_access(role: str | None, required_role: str | None) -> RouteAccess:
    """Decide whether ``role`` may open a route guarded by ``required_role``.

    Denied callers are pointed at their own home route.
    """

    if required_role is None or role == required_role:
        return RouteAccess(allowed=True)
    return RouteAccess(allowed=False, redirect_to=home_route_for(role))


async def fetch_user_role(database_url: str, user_id: str) -> str | None:
    async with session_scope(database_url) as session:
        result = await session.execute(
            sa.select(user_roles.c.role).where(user_roles.c.user_id == user_id)
        )
        role = result.scalar_one_or_none()
    if role not in ROLES:
        return None
    return role
