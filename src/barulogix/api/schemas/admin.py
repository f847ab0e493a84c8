"""Pydantic schemas for admin API endpoints.

Covers user management backed by the identity provider and the operation
history of the calling admin.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


class AdminUserResponse(BaseModel):
    """User account as shown to admins."""

    id: str
    email: str | None = None
    created_at: datetime | None = None
    last_sign_in_at: datetime | None = None
    email_confirmed_at: datetime | None = None
    banned: bool = False
    is_admin: bool = False

    @classmethod
    def from_identity(cls, user: Any, *, is_admin: bool = False) -> AdminUserResponse:
        return cls(
            id=user.user_id,
            email=user.email,
            created_at=user.created_at,
            last_sign_in_at=user.last_sign_in_at,
            email_confirmed_at=user.email_confirmed_at,
            banned=user.banned,
            is_admin=is_admin,
        )


class UserStatsResponse(BaseModel):
    """Account counts."""

    total: int = 0
    active: int = 0
    banned: int = 0
    confirmed: int = 0


class AdminUserListResponse(BaseModel):
    """Response schema for the user listing."""

    users: list[AdminUserResponse] = Field(default_factory=list)
    stats: UserStatsResponse


class UserActionRequest(BaseModel):
    """Request schema for banning or unbanning a user."""

    action: str = Field(..., description="ban or unban")

    model_config = ConfigDict(extra="forbid")


class UserActionResponse(BaseModel):
    """Response schema for user actions."""

    success: bool = True
    message: str
    user: AdminUserResponse | None = None


# -----------------------------------------------------------------------------
# Operation history
# -----------------------------------------------------------------------------


class HistoryEntryResponse(BaseModel):
    """One recorded bulk or admin operation."""

    id: UUID
    operation_type: str
    description: str
    details: dict[str, Any] | None = None
    affected_records: int = 0
    can_undo: bool = False
    undone_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, entry: Any) -> HistoryEntryResponse:
        return cls(
            id=entry.history_id,
            operation_type=entry.operation_type,
            description=entry.description,
            details=entry.details,
            affected_records=entry.affected_records,
            can_undo=entry.can_undo,
            undone_at=entry.undone_at,
            created_at=entry.created_at,
        )


class HistoryListResponse(BaseModel):
    """Latest operation history entries."""

    operations: list[HistoryEntryResponse] = Field(default_factory=list)
    total: int = 0


# -----------------------------------------------------------------------------
# Bulk operations and undo
# -----------------------------------------------------------------------------


class AdminOperationRequest(BaseModel):
    """Request schema for an administrative bulk operation.

    Which fields are read depends on ``operation``:
    transfer_packages uses the from/to conductors, ``transfer_type`` and the
    trackings; change_states, update_dates and change_types use
    ``conductor_id`` and their new value; toggle_conductors and
    recalculate_stats take nothing else.
    """

    operation: str = Field(..., description="Operation name")
    conductor_id: UUID | None = None
    from_conductor_id: UUID | None = None
    to_conductor_id: UUID | None = None
    transfer_type: str = Field("all", description="all, individual or bulk")
    single_tracking: str | None = None
    bulk_trackings: list[str] | None = None
    confirmation: bool = False
    new_state: int | None = Field(None, description="0 pending, 1 delivered, 2 returned")
    new_date: date | None = None
    new_type: str | None = None

    model_config = ConfigDict(extra="forbid")


class OperationResultResponse(BaseModel):
    """Outcome of a bulk operation or an undo."""

    success: bool = True
    message: str
    affected_records: int = 0
    details: dict[str, Any] = Field(default_factory=dict)
