"""
FastAPI dependencies: database session, RBAC policy and auth guards.

Convention for every route: no valid session → 401, authenticated but not
allowed → 403.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Iterable
from typing import Awaitable, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.rbac import PermissionType, RbacPolicy, Role, build_default_policy
from app.db.session import async_session_factory
from app.schemas.user import UserWithPermissions
from app.services.auth import AuthService


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Services ────────────────────────────────────────────────────────
def get_rbac(request: Request) -> RbacPolicy:
    """The policy built at startup; a default one if the lifespan never ran."""
    policy = getattr(request.app.state, "rbac", None)
    if policy is None:
        policy = build_default_policy()
        request.app.state.rbac = policy
    return policy


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


# ── Auth dependencies ───────────────────────────────────────────────
async def get_optional_user(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> Optional[UserWithPermissions]:
    return await auth.get_current_user(request)


async def get_current_user(
    user: Optional[UserWithPermissions] = Depends(get_optional_user),
) -> UserWithPermissions:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_active_user(
    current_user: UserWithPermissions = Depends(get_current_user),
) -> UserWithPermissions:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return current_user


def require_permissions(
    *permissions: PermissionType,
    require_all: bool = False,
    allowed_roles: Iterable[Role] | None = None,
) -> Callable[..., Awaitable[UserWithPermissions]]:
    """Build a dependency that admits users holding the given permissions.

    With ``require_all`` every permission is needed, otherwise any one.  An
    empty permission list only applies the role filter.
    """
    roles = frozenset(allowed_roles) if allowed_roles is not None else None

    async def _guard(
        user: UserWithPermissions = Depends(get_current_active_user),
        rbac: RbacPolicy = Depends(get_rbac),
    ) -> UserWithPermissions:
        if roles is not None and user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions",
            )
        if permissions:
            check = rbac.has_all_permissions if require_all else rbac.has_any_permission
            if not check(user, permissions):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Insufficient permissions",
                )
        return user

    return _guard


def require_write_access(
    *permissions: PermissionType,
) -> Callable[..., Awaitable[UserWithPermissions]]:
    """Like :func:`require_permissions`, but read-only roles are always refused."""
    permission_guard = require_permissions(*permissions)

    async def _guard(
        user: UserWithPermissions = Depends(permission_guard),
        rbac: RbacPolicy = Depends(get_rbac),
    ) -> UserWithPermissions:
        if rbac.is_read_only_role(user.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Read-only role cannot modify data",
            )
        return user

    return _guard


require_super_admin = require_permissions(allowed_roles=[Role.SUPER_ADMIN])
