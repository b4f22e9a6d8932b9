"""
JWT token creation / verification and password hashing (bcrypt).
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# Verified against when the e-mail is unknown so both failure paths cost a hash.
_DUMMY_HASH = pwd_context.hash(secrets.token_urlsafe(16))


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str | None, hashed: str | None) -> bool:
    if not plain or not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def get_password_hash(plain: str, rounds: int | None = None) -> str:
    """Hash with the module cost factor unless *rounds* asks for another."""
    if rounds is None or rounds == settings.BCRYPT_ROUNDS:
        return pwd_context.hash(plain)
    return pwd_context.copy(bcrypt__rounds=rounds).hash(plain)


def burn_password_check(plain: str) -> None:
    """Spend one bcrypt verification without a real hash to compare against."""
    pwd_context.verify(plain or "x", _DUMMY_HASH)


# ── JWT tokens ──────────────────────────────────────────────────────
def create_token(
    subject: str,
    role: str,
    expires_delta: timedelta | None = None,
    secret: str | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.TOKEN_EXPIRE_DAYS))
    return jwt.encode(
        {
            "sub": subject,
            "role": role,
            "iat": now,
            "exp": expire,
            "jti": secrets.token_hex(8),
        },
        secret or settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(token: str, secret: str | None = None) -> dict | None:
    """Return the payload dict if *token* verifies, else ``None``."""
    if not token:
        return None
    try:
        return jwt.decode(
            token,
            secret or settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None
