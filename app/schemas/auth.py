"""Pydantic schemas for sign-in / sign-up / session endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.user import UserRead, normalise_email


class SignInRequest(BaseModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)


class SignUpRequest(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: str
    password: str = Field(min_length=8)
    confirm_password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)

    @model_validator(mode="after")
    def _passwords_match(self) -> "SignUpRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class SignInResponse(BaseModel):
    message: str
    user: UserRead


class SignUpResponse(BaseModel):
    message: str
    user_id: str


class CurrentUser(UserRead):
    effective_permissions: list[str]
    read_only: bool


class MeResponse(BaseModel):
    success: bool = True
    user: CurrentUser


class PageAccessResponse(BaseModel):
    page: str
    allowed: bool


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class RoleInfo(BaseModel):
    role: str
    read_only: bool
    permissions: list[str]


class PermissionInfo(BaseModel):
    name: str
    label: str
    description: str
    category: str


class ProfileResponse(BaseModel):
    success: bool = True
    message: str | None = None
    profile: UserRead
