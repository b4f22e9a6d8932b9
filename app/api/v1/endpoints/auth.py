"""
Auth endpoints: sign-in / sign-up / sign-out and the current-user view.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_auth_service, get_current_active_user, get_db,
                             get_optional_user, get_rbac)
from app.core.config import settings
from app.core.rbac import SIGN_UP_GRANTS, RbacPolicy, Role
from app.models.user import User
from app.schemas.auth import (CurrentUser, MeResponse, MessageResponse,
                              PageAccessResponse, SignInRequest,
                              SignInResponse, SignUpRequest, SignUpResponse)
from app.schemas.user import UserRead, UserWithPermissions
from app.services.auth import AuthService, email_taken, extract_token
from app.services.permissions import replace_user_grants

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
    )


def _clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/sign-in", response_model=SignInResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def sign_in(
    request: Request,
    response: Response,
    body: SignInRequest,
    auth: AuthService = Depends(get_auth_service),
) -> SignInResponse:
    """Verify credentials; the session token is returned as an HttpOnly cookie."""
    user = await auth.authenticate_user(body.email, body.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    _set_auth_cookie(response, user.token)
    return SignInResponse(
        message="Sign-in successful",
        user=UserRead.model_validate(user.model_dump(exclude={"token"})),
    )


@router.post("/sign-up", response_model=SignUpResponse, status_code=201)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def sign_up(
    request: Request,
    response: Response,
    body: SignUpRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> SignUpResponse:
    """Self-registration: the USER role plus the standard sign-up grants."""
    if await email_taken(db, body.email):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    user = User(
        name=body.name.strip(),
        email=body.email,
        hashed_password=auth.hash_password(body.password),
        role=Role.USER.value,
    )
    db.add(user)
    await db.flush()
    # Commits the account and its grants together
    await replace_user_grants(db, user.id, SIGN_UP_GRANTS)
    logger.info("Registered user %s", user.id)
    return SignUpResponse(message="User registered successfully", user_id=user.id)


@router.post("/sign-out", response_model=MessageResponse)
async def sign_out(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """End the current session. Always succeeds and always clears the cookie."""
    token = extract_token(request)
    if token:
        await auth.delete_session(token)
    _clear_auth_cookie(response)
    return MessageResponse(message="Sign out successful")


@router.post("/sign-out-all", response_model=MessageResponse)
async def sign_out_everywhere(
    response: Response,
    current_user: UserWithPermissions = Depends(get_current_active_user),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke every session the caller holds, on every device."""
    await auth.delete_all_user_sessions(current_user.id)
    _clear_auth_cookie(response)
    return MessageResponse(message="Signed out of all sessions")


@router.get("/me", response_model=MeResponse)
async def read_current_user(
    current_user: Optional[UserWithPermissions] = Depends(get_optional_user),
    rbac: RbacPolicy = Depends(get_rbac),
) -> MeResponse:
    """Return the signed-in user with explicit and effective permissions."""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    effective = rbac.effective_permissions(current_user.role, current_user.permissions)
    return MeResponse(
        user=CurrentUser(
            **current_user.model_dump(exclude={"token"}),
            effective_permissions=sorted(p.value for p in effective),
            read_only=rbac.is_read_only_role(current_user.role),
        )
    )


@router.get("/access", response_model=PageAccessResponse)
async def check_page_access(
    page: str = Query(..., min_length=1),
    current_user: UserWithPermissions = Depends(get_current_active_user),
    rbac: RbacPolicy = Depends(get_rbac),
) -> PageAccessResponse:
    """Tell the UI whether the caller may open *page*."""
    return PageAccessResponse(page=page, allowed=rbac.can_access_page(current_user, page))
