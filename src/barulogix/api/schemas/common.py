"""Schemas shared by several API namespaces."""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from barulogix.services.date_ranges import DateFilterType, DateRange, resolve_date_range
from barulogix.services.statistics import PackageStats  # noqa: TC001


class DateFilter(BaseModel):
    """Due-date window as chosen in the dashboard filters."""

    filter_type: DateFilterType = Field(
        DateFilterType.ALL, description="all, lastDays, month or range"
    )
    last_days: int | None = Field(None, description="Window size for lastDays (1-30)")
    month: int | None = Field(None, description="Month for the month filter (1-12)")
    year: int | None = Field(None, description="Year for the month filter")
    start: date | None = Field(None, description="Inclusive lower bound for range")
    end: date | None = Field(None, description="Inclusive upper bound for range")

    model_config = ConfigDict(extra="forbid")

    def resolve(self, today: date) -> DateRange:
        """Concrete due-date bounds for ``today``."""
        return resolve_date_range(
            self.filter_type,
            today=today,
            last_days=self.last_days,
            month=self.month,
            year=self.year,
            start=self.start,
            end=self.end,
        )


class ConductorSummary(BaseModel):
    """Minimal conductor reference embedded in other payloads."""

    id: UUID = Field(..., description="Conductor ID")
    name: str = Field(..., description="Conductor name")
    zone: str = Field(..., description="Delivery zone")

    @classmethod
    def from_model(cls, conductor: Any) -> ConductorSummary:
        return cls(id=conductor.conductor_id, name=conductor.name, zone=conductor.zone)


class StatusBreakdownResponse(BaseModel):
    """Per-status counts for one shipment type."""

    total: int = 0
    pending: int = 0
    delivered: int = 0
    returned: int = 0


class PackageStatsResponse(BaseModel):
    """Aggregate package metrics."""

    total: int = Field(0, description="Number of packages")
    pending: int = Field(0, description="Packages not delivered yet")
    delivered: int = Field(0, description="Delivered packages")
    returned: int = Field(0, description="Returned packages")
    shein_temu: int = Field(0, description="Shein/Temu packages")
    dropi: int = Field(0, description="Dropi packages")
    total_value_dropi: float = Field(0, description="Sum of Dropi values")
    pending_value_dropi: float = Field(0, description="Sum of pending Dropi values")
    delivered_value_dropi: float = Field(0, description="Sum of delivered Dropi values")
    delivery_rate: int = Field(0, description="Delivered share of total, in percent")
    average_delay_days: int = Field(0, description="Average lateness of delivered packages")
    by_type: dict[str, StatusBreakdownResponse] = Field(default_factory=dict)

    @classmethod
    def from_stats(cls, stats: PackageStats) -> PackageStatsResponse:
        return cls.model_validate(stats.to_dict())


class SuccessResponse(BaseModel):
    """Plain acknowledgement."""

    success: bool = True
    message: str
