"""Pydantic schemas for the driver portal."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from barulogix.api.schemas.packages import PackageResponse

# -----------------------------------------------------------------------------
# Accounts
# -----------------------------------------------------------------------------


class ConductorRegisterRequest(BaseModel):
    """Request schema for driver registration."""

    conductor_id: UUID | None = Field(None, description="Id given by the warehouse")
    email: str | None = Field(None, max_length=320)
    password: str | None = Field(None, max_length=200)

    model_config = ConfigDict(extra="forbid")


class ConductorLoginRequest(BaseModel):
    """Request schema for driver login."""

    email: str | None = Field(None, max_length=320)
    password: str | None = Field(None, max_length=200)

    model_config = ConfigDict(extra="forbid")


class ForgotPasswordRequest(BaseModel):
    """Request schema for a password reset link."""

    email: str | None = Field(None, max_length=320)

    model_config = ConfigDict(extra="forbid")


class ResetPasswordRequest(BaseModel):
    """Request schema for choosing a new password."""

    token: str | None = Field(None, max_length=128)
    password: str | None = Field(None, max_length=200)

    model_config = ConfigDict(extra="forbid")


class ConductorAccountSummary(BaseModel):
    """Account reference returned after registration and login."""

    id: UUID = Field(..., description="Conductor ID")
    email: str


class RegisterResponse(BaseModel):
    """Response schema for driver registration."""

    success: bool = True
    message: str
    conductor: ConductorAccountSummary
    email_sent: bool


class ConductorLoginResponse(BaseModel):
    """Response schema for driver login."""

    success: bool = True
    message: str
    token: str
    conductor: ConductorAccountSummary


class MessageResponse(BaseModel):
    """Plain confirmation."""

    success: bool = True
    message: str


class ConductorProfileResponse(BaseModel):
    """The logged-in driver's profile."""

    id: UUID
    name: str
    zone: str
    phone: str | None = None
    email: str
    active: bool
    email_verified: bool
    member_since: datetime | None = None

    @classmethod
    def from_account(cls, account: Any) -> ConductorProfileResponse:
        conductor = account.conductor
        return cls(
            id=conductor.conductor_id,
            name=conductor.name,
            zone=conductor.zone,
            phone=conductor.phone,
            email=account.email,
            active=conductor.active,
            email_verified=account.email_verified,
            member_since=account.created_at,
        )


# -----------------------------------------------------------------------------
# Packages
# -----------------------------------------------------------------------------


class PagePagination(BaseModel):
    """Page-number pagination metadata."""

    current_page: int
    total_pages: int
    total_records: int
    limit: int
    has_next: bool
    has_prev: bool


class ConductorPackagesResponse(BaseModel):
    """One page of the driver's packages in a category."""

    type: str = Field(..., description="Listing category")
    packages: list[PackageResponse] = Field(default_factory=list)
    pagination: PagePagination


class ConductorStatsResponse(BaseModel):
    """Counts per category for the logged-in driver."""

    shein_temu_delivered: int = 0
    shein_temu_pending: int = 0
    dropi_delivered: int = 0
    dropi_pending: int = 0
    total: int = 0
    returned: int = 0
    delivery_rate: int = 0
    pending_value_dropi: float = 0.0


# -----------------------------------------------------------------------------
# Inbox
# -----------------------------------------------------------------------------


class ConductorMarkReadRequest(BaseModel):
    """Request schema for the driver marking notifications read.

    Either ``notification_id`` (one), ``notification_ids`` (many) or
    ``mark_all`` must be given.
    """

    notification_id: UUID | None = None
    notification_ids: list[UUID] | None = None
    mark_all: bool = False

    model_config = ConfigDict(extra="forbid")
