"""Pydantic schemas for report and export endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from barulogix.api.schemas.common import ConductorSummary, DateFilter, PackageStatsResponse


class ReportRequest(BaseModel):
    """Request schema for generating a report."""

    report_scope: str = Field("general", description="general or specific")
    conductor_id: UUID | None = Field(None, description="Required for specific reports")
    date_filter: DateFilter = Field(default_factory=DateFilter)

    model_config = ConfigDict(extra="forbid")


class ConductorReportResponse(BaseModel):
    """Metrics for one conductor."""

    conductor: ConductorSummary
    stats: PackageStatsResponse
    average_pending_delay_days: int = 0


class ReportResponse(BaseModel):
    """Aggregated report over a due-date window."""

    report_scope: str
    date_from: date | None = None
    date_to: date | None = None
    generated_at: datetime
    stats: PackageStatsResponse
    conductors: list[ConductorReportResponse] = Field(default_factory=list)
    daily_by_type: dict[date, dict[str, int]] = Field(
        default_factory=dict, description="Package count per due date and shipment type"
    )
    returned_by_zone: dict[str, int] = Field(
        default_factory=dict, description="Returned packages per zone"
    )

    @classmethod
    def from_report(cls, report: Any) -> ReportResponse:
        return cls(
            report_scope=report.scope.value,
            date_from=report.date_range.start,
            date_to=report.date_range.end,
            generated_at=report.generated_at,
            stats=PackageStatsResponse.from_stats(report.stats),
            conductors=[
                ConductorReportResponse(
                    conductor=ConductorSummary.from_model(entry.conductor),
                    stats=PackageStatsResponse.from_stats(entry.stats),
                    average_pending_delay_days=entry.average_pending_delay_days,
                )
                for entry in report.conductors
            ],
            daily_by_type=report.daily_by_type,
            returned_by_zone=report.returned_by_zone,
        )


class ExportRequest(BaseModel):
    """Request schema for exporting packages and conductors."""

    format: str = Field("json", description="json or csv")
    conductor_id: UUID | None = Field(None, description="Restrict packages to one conductor")
    include_conductors: bool = Field(True, description="Include the conductor table")
    include_packages: bool = Field(True, description="Include the package table")
    date_filter: DateFilter = Field(default_factory=DateFilter)

    model_config = ConfigDict(extra="forbid")
