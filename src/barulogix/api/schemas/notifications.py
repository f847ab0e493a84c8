"""Pydantic schemas for conductor notification endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from barulogix.api.schemas.common import ConductorSummary
from barulogix.api.schemas.packages import DelayedPackageResponse

# -----------------------------------------------------------------------------
# Notifications
# -----------------------------------------------------------------------------


class NotificationResponse(BaseModel):
    """Response schema for a single notification."""

    id: UUID = Field(..., description="Notification ID")
    conductor_id: UUID = Field(..., description="Addressed conductor")
    kind: str = Field(..., description="delay_alert or custom_message")
    title: str
    message: str
    package_id: UUID | None = Field(None, description="Related package, for delay alerts")
    is_read: bool = False
    created_at: datetime | None = None
    time_ago: str | None = Field(None, description="Relative age label")

    @classmethod
    def from_model(cls, notification: Any, time_ago: str | None = None) -> NotificationResponse:
        return cls(
            id=notification.notification_id,
            conductor_id=notification.conductor_id,
            kind=notification.kind.value,
            title=notification.title,
            message=notification.message,
            package_id=notification.package_id,
            is_read=notification.is_read,
            created_at=notification.created_at,
            time_ago=time_ago,
        )


class PaginationInfo(BaseModel):
    """Pagination metadata."""

    limit: int
    offset: int
    has_more: bool


class NotificationPageResponse(BaseModel):
    """One page of a conductor's inbox."""

    conductor: ConductorSummary
    notifications: list[NotificationResponse] = Field(default_factory=list)
    total: int = Field(0, description="Notifications matching the filter")
    unread_count: int = Field(0, description="Unread notifications overall")
    pagination: PaginationInfo


# -----------------------------------------------------------------------------
# Dispatch
# -----------------------------------------------------------------------------


class SendAlertRequest(BaseModel):
    """Request schema for a single delay alert."""

    package_id: UUID = Field(..., description="Delayed package")
    conductor_id: UUID = Field(..., description="Conductor holding the package")
    days_late: int = Field(..., description="Days past the due date")

    model_config = ConfigDict(extra="forbid")


class SendAlertResponse(BaseModel):
    """Response schema for a single delay alert."""

    success: bool = True
    message: str
    notification: NotificationResponse


class SendBulkAlertsRequest(BaseModel):
    """Request schema for delay alerts over many packages."""

    package_ids: list[UUID] = Field(default_factory=list, description="Delayed packages")

    model_config = ConfigDict(extra="forbid")


class ConductorAlertStats(BaseModel):
    """Alerts sent to one conductor."""

    conductor_id: UUID
    conductor_name: str
    total_alerts: int
    trackings: list[str] = Field(default_factory=list)


class SendBulkAlertsResponse(BaseModel):
    """Response schema for bulk delay alerts."""

    success: bool = True
    message: str
    total_packages: int
    conductor_stats: list[ConductorAlertStats] = Field(default_factory=list)


class SendCustomRequest(BaseModel):
    """Request schema for a free-text broadcast."""

    message: str | None = Field(None, max_length=2000, description="Message body")
    conductor_ids: list[UUID] | None = Field(None, description="Explicit recipients")
    send_to_all: bool = Field(False, description="Send to every active conductor")

    model_config = ConfigDict(extra="forbid")


class SendCustomResponse(BaseModel):
    """Response schema for a free-text broadcast."""

    success: bool = True
    message: str
    total_sent: int
    conductors: list[ConductorSummary] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Read state
# -----------------------------------------------------------------------------


class MarkReadRequest(BaseModel):
    """Request schema for marking one or many notifications read.

    Either ``notification_id`` (one), ``notification_ids`` (many) or
    ``mark_all`` must be given.
    """

    conductor_id: UUID | None = Field(None, description="Owning conductor")
    notification_id: UUID | None = Field(None, description="Single notification")
    notification_ids: list[UUID] | None = Field(None, description="Several notifications")
    mark_all: bool = Field(False, description="Mark every unread notification")

    model_config = ConfigDict(extra="forbid")


class MarkReadResponse(BaseModel):
    """Response schema for read-state updates."""

    success: bool = True
    message: str
    updated_count: int


# -----------------------------------------------------------------------------
# Delayed packages
# -----------------------------------------------------------------------------


class DelayedConductorResponse(BaseModel):
    """Delay summary for one conductor."""

    conductor: ConductorSummary
    total_delayed: int
    total_days_late: int
    value_at_risk: float
    package_ids: list[UUID] = Field(default_factory=list)


class DelayedPackagesResponse(BaseModel):
    """Overdue pending packages grouped for alerting."""

    cutoff: date = Field(..., description="Due dates before this day are delayed")
    total_delayed: int
    packages: list[DelayedPackageResponse] = Field(default_factory=list)
    conductor_stats: list[DelayedConductorResponse] = Field(default_factory=list)
