"""Pydantic schemas for User CRUD and the authenticated-user view."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.rbac import Role


def normalise_email(v: str) -> str:
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain or " " in v:
        raise ValueError("Invalid email address")
    return v


class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: str
    password: str
    role: Role = Role.USER
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)


class UserUpdate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: str
    role: Role
    is_active: bool = True
    password: str | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)


class UserRead(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    permissions: list[str] = []

    model_config = ConfigDict(from_attributes=True)


class UserWithPermissions(UserRead):
    """User fields, flattened explicit grants and the session token."""

    token: str = Field(repr=False)


class PermissionsUpdate(BaseModel):
    permissions: list[str]


class ProfileUpdate(BaseModel):
    """Self-service edit of the caller's own account; omitted fields stay as they are."""

    name: str | None = Field(default=None, min_length=2, max_length=200)
    email: str | None = None
    current_password: str | None = None
    new_password: str | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str | None) -> str | None:
        return None if v is None else normalise_email(v)
