"""Pydantic schemas for JWT tokens."""

from __future__ import annotations

from pydantic import BaseModel

from app.core.rbac import Role


class TokenClaims(BaseModel):
    """The identity a valid token asserts."""

    user_id: str
    role: Role
