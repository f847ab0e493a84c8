"""Pydantic schemas for package endpoints.

Covers package CRUD, search, bulk lookup, bulk import, statistics and
delivery reconciliation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from barulogix.api.schemas.common import ConductorSummary, PackageStatsResponse
from barulogix.db.models.base import PackageStatus
from barulogix.db.models.packages import MAX_TRACKING_LENGTH

# -----------------------------------------------------------------------------
# CRUD
# -----------------------------------------------------------------------------


class PackageCreateRequest(BaseModel):
    """Request schema for creating a package."""

    tracking: str | None = Field(
        None, max_length=MAX_TRACKING_LENGTH, description="Tracking number"
    )
    conductor_id: UUID | None = Field(None, description="Conductor the package is assigned to")
    shipment_type: str | None = Field(None, description="Shein/Temu or Dropi")
    due_date: date | None = Field(None, description="Scheduled delivery date")
    value: Decimal | None = Field(None, description="Amount to collect (Dropi only)")

    model_config = ConfigDict(extra="forbid")


class PackageUpdateRequest(PackageCreateRequest):
    """Request schema for replacing a package's editable fields."""

    status: int | None = Field(None, description="0 pending, 1 delivered, 2 returned")
    client_delivery_date: date | None = Field(
        None, description="Date the customer received the package"
    )


class PackageResponse(BaseModel):
    """Response schema for a package."""

    id: UUID = Field(..., description="Package ID")
    tracking: str = Field(..., description="Tracking number")
    conductor_id: UUID = Field(..., description="Assigned conductor")
    conductor: ConductorSummary | None = Field(None, description="Assigned conductor details")
    shipment_type: str = Field(..., description="Shein/Temu or Dropi")
    status: int = Field(..., description="0 pending, 1 delivered, 2 returned")
    status_label: str = Field(..., description="Spanish status label")
    due_date: date = Field(..., description="Scheduled delivery date")
    client_delivery_date: date | None = Field(None, description="Actual delivery date")
    value: float | None = Field(None, description="Amount to collect (Dropi only)")
    created_at: datetime | None = Field(None, description="Creation time")
    updated_at: datetime | None = Field(None, description="Last update time")

    @classmethod
    def from_model(cls, package: Any, **extra: Any) -> PackageResponse:
        # Only use the conductor when already loaded
        conductor = package.__dict__.get("conductor")
        return cls(
            id=package.package_id,
            tracking=package.tracking,
            conductor_id=package.conductor_id,
            conductor=ConductorSummary.from_model(conductor) if conductor is not None else None,
            shipment_type=package.shipment_type.value,
            status=int(package.status),
            status_label=PackageStatus(package.status).label,
            due_date=package.due_date,
            client_delivery_date=package.client_delivery_date,
            value=float(package.value) if package.value is not None else None,
            created_at=package.created_at,
            updated_at=package.updated_at,
            **extra,
        )


class PackageListResponse(BaseModel):
    """Response schema for package listings and searches."""

    packages: list[PackageResponse] = Field(default_factory=list)
    total: int = Field(0, description="Number of packages returned")


class PackageStatsEnvelope(BaseModel):
    """Owner-wide statistics over a due-date window."""

    stats: PackageStatsResponse
    date_from: date | None = Field(None, description="Window lower bound")
    date_to: date | None = Field(None, description="Window upper bound")


# -----------------------------------------------------------------------------
# Per-conductor view
# -----------------------------------------------------------------------------


class DelayedPackageResponse(PackageResponse):
    """Package annotated with its lateness."""

    days_late: int = Field(..., description="Whole days past the due date")


class ByConductorResponse(BaseModel):
    """Packages and metrics for one conductor."""

    conductor: ConductorSummary
    packages: list[PackageResponse] = Field(default_factory=list)
    stats: PackageStatsResponse
    delayed: list[DelayedPackageResponse] = Field(
        default_factory=list, description="Pending packages past the grace threshold"
    )
    average_pending_delay_days: int = Field(0, description="Mean lateness of pending packages")


# -----------------------------------------------------------------------------
# Bulk lookup
# -----------------------------------------------------------------------------


class BulkSearchRequest(BaseModel):
    """Request schema for looking up many trackings at once."""

    trackings: list[str] = Field(default_factory=list, description="Tracking numbers")

    model_config = ConfigDict(extra="forbid")


class BulkSearchItem(PackageResponse):
    """Found package with lateness when still pending."""

    days_late: int | None = Field(None, description="Days past due (pending only)")


class BulkSearchResponse(BaseModel):
    """Response schema for a bulk tracking lookup."""

    found: list[BulkSearchItem] = Field(default_factory=list)
    not_found: list[str] = Field(default_factory=list)
    total_requested: int = Field(..., description="Distinct non-blank trackings requested")
    total_found: int = Field(..., description="Trackings found in the warehouse")


# -----------------------------------------------------------------------------
# Bulk import
# -----------------------------------------------------------------------------


class BulkImportRequest(BaseModel):
    """Request schema for importing pasted spreadsheet rows."""

    shipment_type: str | None = Field(None, description="Shein/Temu or Dropi")
    data: str | None = Field(
        None, description="One tracking per line, or tracking<TAB>value for Dropi"
    )
    conductor_id: UUID | None = Field(None, description="Conductor for every row")
    due_date: date | None = Field(None, description="Scheduled delivery date for every row")

    model_config = ConfigDict(extra="forbid")


class BulkImportResponse(BaseModel):
    """Response schema for a bulk import."""

    success: bool = True
    inserted: int = Field(..., description="Packages created")
    packages: list[PackageResponse] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list, description="Rejected lines")
    total_processed: int = Field(..., description="Non-blank lines read")


# -----------------------------------------------------------------------------
# Delivery reconciliation
# -----------------------------------------------------------------------------


class DeliveryRequest(BaseModel):
    """Request schema for bulk deliver/return by tracking."""

    trackings: list[str] = Field(default_factory=list, description="Tracking numbers")
    operation: str = Field("deliver", description="deliver or return")
    client_delivery_date: date | None = Field(
        None, description="Customer delivery date (deliver only)"
    )

    model_config = ConfigDict(extra="forbid")


class ReconciledItem(BaseModel):
    """One successfully transitioned package."""

    id: UUID
    tracking: str
    shipment_type: str
    conductor_name: str
    conductor_zone: str
    previous_status: int
    new_status: int


class DeliveryResponse(BaseModel):
    """Per-item outcome of a reconciliation batch."""

    success: bool = True
    message: str
    processed_count: int
    total_count: int
    updated: list[ReconciledItem] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
