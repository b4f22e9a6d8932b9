"""
AuthService: passwords, tokens and server-side sessions.

Lives in the server package only; nothing here is importable from client
code.  Authentication and session failures come back as ``None``; bad input
raises an :class:`~app.core.exceptions.AuthValidationError`; database
failures are logged and re-raised as :class:`~app.core.exceptions.AuthServiceError`,
except for session deletion, which is best-effort.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import unquote

from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import Settings, settings
from app.core.exceptions import (AuthServiceError, PasswordValidationError,
                                 TokenValidationError)
from app.core.rbac import Role, as_role
from app.core.security import (burn_password_check, create_token, decode_token,
                               get_password_hash, verify_password)
from app.models.permission import UserPermission
from app.models.session import UserSession
from app.models.user import User
from app.schemas.token import TokenClaims
from app.schemas.user import UserWithPermissions

logger = logging.getLogger(__name__)

WITH_PERMISSIONS = selectinload(User.user_permissions).selectinload(UserPermission.permission)


def _ensure_utc(dt: datetime) -> datetime:
    """SQLite hands back naive timestamps; treat them as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def extract_token(request: Request, cookie_name: str | None = None) -> str | None:
    """Bearer header first, then the auth cookie (URL-decoded)."""
    scheme, param = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and param:
        return param

    raw = request.cookies.get(cookie_name or settings.AUTH_COOKIE_NAME)
    if not raw:
        return None
    token = unquote(raw)
    if token.startswith("Bearer "):
        token = token[len("Bearer "):]
    return token or None


def compose_user(user: User, token: str) -> UserWithPermissions:
    """Flatten a loaded ``User`` row into the view handed to route handlers."""
    return UserWithPermissions(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
        permissions=user.permission_names,
        token=token,
    )


async def email_taken(db: AsyncSession, email: str, exclude_id: str | None = None) -> bool:
    """True when another account already uses *email* (case-insensitive)."""
    query = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query)
    return result.scalar_one_or_none() is not None


class AuthService:
    def __init__(self, db: AsyncSession, config: Settings = settings) -> None:
        self.db = db
        self.config = config

    # ── Passwords ───────────────────────────────────────────────────
    def hash_password(self, password: str) -> str:
        if not password or len(password) < self.config.MIN_PASSWORD_LENGTH:
            raise PasswordValidationError(
                f"Password must be at least {self.config.MIN_PASSWORD_LENGTH} characters"
            )
        return get_password_hash(password, rounds=self.config.BCRYPT_ROUNDS)

    def compare_password(self, password: str | None, hashed: str | None) -> bool:
        return verify_password(password, hashed)

    # ── Tokens ──────────────────────────────────────────────────────
    def generate_token(self, user_id: str, role: Role | str) -> str:
        if not user_id:
            raise TokenValidationError("User ID is required to generate a token")
        resolved = as_role(role) if role else None
        if resolved is None:
            raise TokenValidationError("A valid role is required to generate a token")
        return create_token(
            user_id,
            resolved.value,
            expires_delta=timedelta(days=self.config.TOKEN_EXPIRE_DAYS),
            secret=self.config.JWT_SECRET,
        )

    def validate_token(self, token: str | None) -> TokenClaims | None:
        if not token:
            return None
        payload = decode_token(token, secret=self.config.JWT_SECRET)
        if payload is None:
            return None
        user_id = payload.get("sub")
        role = as_role(payload.get("role"))
        if not user_id or role is None:
            return None
        return TokenClaims(user_id=user_id, role=role)

    # ── Users ───────────────────────────────────────────────────────
    async def authenticate_user(self, email: str, password: str) -> UserWithPermissions | None:
        """Verify credentials and open a session.

        Unknown e-mail, inactive account and wrong password all return
        ``None`` after the same amount of bcrypt work.
        """
        email = (email or "").strip().lower()
        try:
            result = await self.db.execute(
                select(User)
                .options(WITH_PERMISSIONS)
                .where(func.lower(User.email) == email)
            )
            user = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("User lookup failed: %s", exc)
            raise AuthServiceError("Failed to authenticate user") from exc

        if user is None:
            burn_password_check(password)
            return None

        password_ok = self.compare_password(password, user.hashed_password)
        if not password_ok or not user.is_active:
            logger.info("Rejected sign-in for user %s", user.id)
            return None

        token = self.generate_token(user.id, user.role)
        user.last_login = datetime.now(timezone.utc)
        await self.create_or_update_session(user.id, token)
        logger.info("User %s signed in", user.id)
        return compose_user(user, token)

    # ── Sessions ────────────────────────────────────────────────────
    async def create_or_update_session(self, user_id: str, token: str) -> None:
        """Upsert the session keyed by *token*; expiry moves to now + N days."""
        expires = datetime.now(timezone.utc) + timedelta(days=self.config.SESSION_EXPIRE_DAYS)
        try:
            result = await self.db.execute(
                select(UserSession).where(UserSession.token == token)
            )
            session = result.scalar_one_or_none()
            if session is None:
                self.db.add(UserSession(user_id=user_id, token=token, expires=expires))
            else:
                session.user_id = user_id
                session.expires = expires
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Session creation failed for user %s: %s", user_id, exc)
            raise AuthServiceError("Failed to create session") from exc

    async def validate_session(self, token: str | None) -> UserWithPermissions | None:
        if not token:
            return None

        claims = self.validate_token(token)
        try:
            result = await self.db.execute(
                select(UserSession)
                .options(selectinload(UserSession.user).options(WITH_PERMISSIONS))
                .where(UserSession.token == token)
            )
            session = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("Session lookup failed: %s", exc)
            raise AuthServiceError("Failed to validate session") from exc

        if session is None:
            return None

        user = session.user
        if (
            claims is None
            or claims.user_id != session.user_id
            or _ensure_utc(session.expires) <= datetime.now(timezone.utc)
            or user is None
            or not user.is_active
        ):
            await self.delete_session(token)
            return None

        return compose_user(user, token)

    async def delete_session(self, token: str) -> None:
        try:
            await self.db.execute(delete(UserSession).where(UserSession.token == token))
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning("Session deletion failed: %s", exc)

    async def delete_all_user_sessions(self, user_id: str) -> None:
        try:
            await self.db.execute(delete(UserSession).where(UserSession.user_id == user_id))
            await self.db.commit()
            logger.info("Revoked all sessions for user %s", user_id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning("Session deletion failed for user %s: %s", user_id, exc)

    # ── Requests ────────────────────────────────────────────────────
    async def get_current_user(self, request: Request) -> UserWithPermissions | None:
        token = extract_token(request, self.config.AUTH_COOKIE_NAME)
        if token is None:
            return None
        return await self.validate_session(token)
