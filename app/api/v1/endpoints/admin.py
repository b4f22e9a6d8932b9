"""
Admin endpoints: user accounts, explicit grants and the role/permission catalog.

Every mutation that changes what a user may do (role change, deactivation,
soft delete) revokes that user's live sessions.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_auth_service, get_db, get_rbac,
                             require_permissions, require_super_admin)
from app.core.rbac import (PERMISSION_CATEGORIES, PERMISSION_DESCRIPTIONS,
                           PERMISSION_LABELS, PermissionType, RbacPolicy, Role)
from app.models.user import User
from app.schemas.auth import MessageResponse, PermissionInfo, RoleInfo
from app.schemas.user import (PermissionsUpdate, UserCreate, UserRead,
                              UserUpdate, UserWithPermissions)
from app.services.auth import WITH_PERMISSIONS, AuthService, email_taken
from app.services.permissions import clear_user_grants, replace_user_grants

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


def _to_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
        permissions=user.permission_names,
    )


async def _load_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(
        select(User)
        .options(WITH_PERMISSIONS)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _guard_super_admin_target(actor: UserWithPermissions, *roles: str | None) -> None:
    """Only a super admin may create, promote or modify super admin accounts."""
    if actor.role == Role.SUPER_ADMIN:
        return
    if any(r == Role.SUPER_ADMIN.value for r in roles):
        raise HTTPException(
            status_code=403,
            detail="Only a super admin can manage super admin accounts",
        )


# ── Users ───────────────────────────────────────────────────────────
@router.get("/users", response_model=list[UserRead])
async def list_users(
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.READ_USER)),
) -> list[UserRead]:
    """All users with their explicit grants, newest first."""
    result = await db.execute(
        select(User).options(WITH_PERMISSIONS).order_by(User.created_at.desc())
    )
    return [_to_read(u) for u in result.scalars().all()]


@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    actor: UserWithPermissions = Depends(require_permissions(PermissionType.CREATE_USER)),
) -> UserRead:
    _guard_super_admin_target(actor, body.role.value)
    if await email_taken(db, body.email):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    user = User(
        name=body.name.strip(),
        email=body.email,
        hashed_password=auth.hash_password(body.password),
        role=body.role.value,
        is_active=body.is_active,
    )
    db.add(user)
    await db.commit()
    logger.info("User %s created %s with role %s", actor.id, user.id, user.role)
    return _to_read(await _load_user(db, user.id))


@router.get("/users/{user_id}", response_model=UserRead)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.READ_USER)),
) -> UserRead:
    return _to_read(await _load_user(db, user_id))


@router.put("/users/{user_id}", response_model=UserRead)
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    actor: UserWithPermissions = Depends(require_permissions(PermissionType.UPDATE_USER)),
) -> UserRead:
    """Replace profile fields; a new password is hashed when given."""
    user = await _load_user(db, user_id)
    _guard_super_admin_target(actor, user.role, body.role.value)

    if body.email != user.email and await email_taken(db, body.email, exclude_id=user.id):
        raise HTTPException(status_code=409, detail="Email is already taken by another user")

    role_changed = body.role.value != user.role
    deactivated = user.is_active and not body.is_active

    user.name = body.name.strip()
    user.email = body.email
    user.role = body.role.value
    user.is_active = body.is_active
    if body.password and body.password.strip():
        user.hashed_password = auth.hash_password(body.password)
    if role_changed:
        # Explicit grants were chosen for the old role.
        await clear_user_grants(db, user.id)
    await db.commit()

    if role_changed or deactivated:
        await auth.delete_all_user_sessions(user.id)
    logger.info("User %s updated %s", actor.id, user.id)
    return _to_read(await _load_user(db, user.id))


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def deactivate_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    actor: UserWithPermissions = Depends(require_permissions(PermissionType.DELETE_USER)),
) -> MessageResponse:
    """Soft-delete: the account is deactivated and signed out everywhere."""
    if user_id == actor.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")

    user = await _load_user(db, user_id)
    _guard_super_admin_target(actor, user.role)
    user.is_active = False
    await db.commit()
    await auth.delete_all_user_sessions(user.id)
    logger.info("User %s deactivated %s", actor.id, user.id)
    return MessageResponse(message="User deleted successfully")


# ── Explicit grants ─────────────────────────────────────────────────
@router.get("/users/{user_id}/permissions", response_model=UserRead)
async def get_user_permissions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(
        require_permissions(PermissionType.MANAGE_PERMISSIONS)
    ),
) -> UserRead:
    return _to_read(await _load_user(db, user_id))


@router.put("/users/{user_id}/permissions", response_model=UserRead)
async def update_user_permissions(
    user_id: str,
    body: PermissionsUpdate,
    db: AsyncSession = Depends(get_db),
    actor: UserWithPermissions = Depends(
        require_permissions(PermissionType.MANAGE_PERMISSIONS)
    ),
) -> UserRead:
    """Replace the user's explicit grants with exactly the given list."""
    valid = {p.value for p in PermissionType}
    for name in body.permissions:
        if name not in valid:
            raise HTTPException(status_code=400, detail=f"Invalid permission: {name}")

    user = await _load_user(db, user_id)
    _guard_super_admin_target(actor, user.role)
    await replace_user_grants(db, user.id, body.permissions)
    return _to_read(await _load_user(db, user.id))


# ── Catalog ─────────────────────────────────────────────────────────
@router.get("/roles", response_model=list[RoleInfo])
async def list_roles(
    rbac: RbacPolicy = Depends(get_rbac),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.MANAGE_ROLES)),
) -> list[RoleInfo]:
    return [
        RoleInfo(
            role=role.value,
            read_only=rbac.is_read_only_role(role),
            permissions=[p.value for p in rbac.role_defaults(role)],
        )
        for role in Role
    ]


@router.get("/permissions", response_model=list[PermissionInfo])
async def list_permissions(
    _user: UserWithPermissions = Depends(require_super_admin),
) -> list[PermissionInfo]:
    """Full permission catalog; super admins only."""
    return [
        PermissionInfo(
            name=permission.value,
            label=PERMISSION_LABELS[permission],
            description=PERMISSION_DESCRIPTIONS[permission],
            category=category,
        )
        for category, permissions in PERMISSION_CATEGORIES.items()
        for permission in permissions
    ]
