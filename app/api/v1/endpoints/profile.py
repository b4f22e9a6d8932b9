"""
Self-service profile: any signed-in user can view and edit their own account.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_auth_service, get_current_active_user, get_db
from app.api.v1.endpoints.auth import limiter
from app.core.config import settings
from app.models.user import User
from app.schemas.auth import ProfileResponse
from app.schemas.user import ProfileUpdate, UserRead, UserWithPermissions
from app.services.auth import (WITH_PERMISSIONS, AuthService, compose_user,
                               email_taken)

router = APIRouter(prefix="/user", tags=["profile"])
logger = logging.getLogger(__name__)


async def _load_self(db: AsyncSession, user_id: str) -> User:
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


def _profile(user: User) -> UserRead:
    return UserRead.model_validate(compose_user(user, "").model_dump(exclude={"token"}))


@router.get("/profile", response_model=ProfileResponse)
async def read_profile(
    db: AsyncSession = Depends(get_db),
    current_user: UserWithPermissions = Depends(get_current_active_user),
) -> ProfileResponse:
    return ProfileResponse(profile=_profile(await _load_self(db, current_user.id)))


@router.put("/profile", response_model=ProfileResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def update_profile(
    request: Request,
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserWithPermissions = Depends(get_current_active_user),
    auth: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    """Change name and e-mail; the password only changes when the current one verifies.

    Sessions stay open, so the caller is not signed out by their own edit.
    """
    user = await _load_self(db, current_user.id)

    if body.name:
        user.name = body.name.strip()

    if body.email and body.email != user.email:
        if await email_taken(db, body.email, exclude_id=user.id):
            raise HTTPException(status_code=409, detail="Email already taken")
        user.email = body.email

    if body.new_password:
        if not body.current_password:
            raise HTTPException(
                status_code=400, detail="Current password is required to change password"
            )
        if not auth.compare_password(body.current_password, user.hashed_password):
            raise HTTPException(status_code=400, detail="Current password is incorrect")
        user.hashed_password = auth.hash_password(body.new_password)
        logger.info("User %s changed their password", user.id)

    await db.commit()
    user = await _load_self(db, user.id)
    return ProfileResponse(message="Profile updated successfully", profile=_profile(user))
