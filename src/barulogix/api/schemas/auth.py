"""Pydantic schemas for authentication endpoints."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Email and password exchanged with the identity provider."""

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=200)

    model_config = ConfigDict(extra="forbid")


class LoginUser(BaseModel):
    id: str
    email: str | None = None
    is_admin: bool = False


class LoginResponse(BaseModel):
    """Session tokens issued by the identity provider."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None
    user: LoginUser


class MeResponse(BaseModel):
    """The authenticated caller."""

    id: UUID
    email: str | None = None
    is_admin: bool = False
