# app/core/rbac.py

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db_session
from app.core.permission_catalog import route_capabilities
from app.core.roles import is_admin, resolve_role
from app.models.user import User
from app.services.permission_evaluator import has_any_capability
from app.services.permission_service import build_effective_view
from app.services.scope_service import parse_domain


def AllowRoles(*allowed_roles):
    """
    Flexible RBAC:
    - Accepts UserRole values or raw strings
    - Case-insensitive
    - Admin bypasses everything
    """

    normalized_allowed = {resolve_role(r) for r in allowed_roles}

    async def role_checker(current_user: User = Depends(get_current_user)):
        if is_admin(current_user):
            return current_user

        if resolve_role(current_user) not in normalized_allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied for role '{resolve_role(current_user)}'"
            )

        return current_user

    return role_checker


# No role besides admin passes
require_admin = AllowRoles()


async def ensure_capability(
    session: AsyncSession, current_user: User, keys, detail: Optional[str] = None
) -> User:
    """
    Admin, or any of ``keys`` held in the caller's effective view.
    Matching is strict: canonical forms only, no substring fallback.
    """
    if is_admin(current_user):
        return current_user

    view = await build_effective_view(session, current_user)
    if not keys or not has_any_capability(view, keys, strict=True):
        if detail is None:
            detail = (
                f"Missing permission '{keys[0]}'" if len(keys) == 1
                else f"Requires one of: {', '.join(keys)}"
            )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return current_user


def RequireCapability(*keys: str):

    async def capability_checker(
        current_user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_db_session),
    ):
        return await ensure_capability(session, current_user, keys)

    return capability_checker


async def require_scope_manager(
    request: Request,
    domain_token: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Admin, or a capability ROUTE_CAPABILITY_MAP lists for the matched route,
    for the domain named by the ``{domain_token}`` path parameter.
    Unmapped routes fail closed.
    """
    domain = parse_domain(domain_token)
    route_path = getattr(request.scope.get("route"), "path", request.url.path)
    keys = route_capabilities(request.method, route_path, domain)
    if not keys:
        logger.error(f"No capability mapping for {request.method} {route_path}")

    return await ensure_capability(
        session,
        current_user,
        keys,
        detail=f"You do not have permission to manage {domain.value} school assignments",
    )
