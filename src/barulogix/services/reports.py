"""Reports and data exports.

``ReportBuilder.generate`` aggregates the owner's packages over a due-date
window, globally and per conductor. ``ReportBuilder.export`` renders a
snapshot of conductors and packages as JSON or CSV.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from barulogix.db.models.base import PackageStatus, ShipmentType
from barulogix.services.conductors import ConductorRepository
from barulogix.services.errors import ValidationError
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.packages import PackageRepository
from barulogix.services.statistics import (
    PackageStats,
    average_pending_delay,
    compute_stats,
)
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from barulogix.db.models.conductors import Conductor
    from barulogix.db.models.packages import Package
    from barulogix.services.date_ranges import DateRange

logger = logging.getLogger(__name__)

PACKAGE_CSV_HEADER = (
    "Tracking",
    "Driver",
    "Zone",
    "Type",
    "Status",
    "DueDate",
    "Value",
    "CreatedAt",
)
CONDUCTOR_CSV_HEADER = ("Name", "Zone", "Active", "CreatedAt")


class ReportScope(str, Enum):
    """Whole warehouse or a single conductor."""

    GENERAL = "general"
    SPECIFIC = "specific"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True, slots=True)
class ConductorReport:
    """Metrics for one conductor inside a report."""

    conductor: Conductor
    stats: PackageStats
    average_pending_delay_days: int


@dataclass(frozen=True, slots=True)
class Report:
    """Aggregated report over a due-date window.

    Attributes:
        scope: General or specific.
        date_range: Window the packages were filtered by.
        generated_at: Report clock.
        stats: Metrics over every package in the window.
        conductors: Per-conductor metrics, ordered by conductor name.
        daily_by_type: Package count per due date and shipment type.
        returned_by_zone: Returned package count per conductor zone.
    """

    scope: ReportScope
    date_range: DateRange
    generated_at: datetime
    stats: PackageStats
    conductors: list[ConductorReport] = field(default_factory=list)
    daily_by_type: dict[date, dict[str, int]] = field(default_factory=dict)
    returned_by_zone: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ExportFile:
    """Rendered export ready to be sent as an attachment."""

    filename: str
    media_type: str
    content: str
    package_count: int
    conductor_count: int


def _decimal_text(value: Any) -> str:
    return "" if value is None else f"{value:f}"


def render_packages_csv(packages: list[Package]) -> list[list[str]]:
    """Rows (header first) of the packages table."""
    rows = [list(PACKAGE_CSV_HEADER)]
    for package in packages:
        rows.append(
            [
                package.tracking,
                package.conductor.name,
                package.conductor.zone,
                package.shipment_type.value,
                PackageStatus(package.status).label,
                package.due_date.isoformat(),
                _decimal_text(package.value),
                package.created_at.isoformat() if package.created_at else "",
            ]
        )
    return rows


def render_conductors_csv(conductors: list[Conductor]) -> list[list[str]]:
    """Rows (header first) of the conductors table."""
    rows = [list(CONDUCTOR_CSV_HEADER)]
    for conductor in conductors:
        rows.append(
            [
                conductor.name,
                conductor.zone,
                "true" if conductor.active else "false",
                conductor.created_at.isoformat() if conductor.created_at else "",
            ]
        )
    return rows


def _package_json(package: Package) -> dict[str, Any]:
    return {
        "id": str(package.package_id),
        "tracking": package.tracking,
        "conductor_id": str(package.conductor_id),
        "conductor_name": package.conductor.name,
        "zone": package.conductor.zone,
        "shipment_type": package.shipment_type.value,
        "status": int(package.status),
        "status_label": PackageStatus(package.status).label,
        "due_date": package.due_date.isoformat(),
        "client_delivery_date": (
            package.client_delivery_date.isoformat() if package.client_delivery_date else None
        ),
        "value": float(package.value) if package.value is not None else None,
        "created_at": package.created_at.isoformat() if package.created_at else None,
    }


def _conductor_json(conductor: Conductor) -> dict[str, Any]:
    return {
        "id": str(conductor.conductor_id),
        "name": conductor.name,
        "zone": conductor.zone,
        "phone": conductor.phone,
        "active": conductor.active,
        "created_at": conductor.created_at.isoformat() if conductor.created_at else None,
    }


class ReportBuilder(StoreService):
    """Builds reports and exports for one owner."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self._packages = PackageRepository(session)
        self._conductors = ConductorRepository(session)
        self._history = OperationHistoryService(session)

    async def generate(
        self,
        owner_id: UUID,
        scope: ReportScope | str,
        date_range: DateRange,
        conductor_id: UUID | None = None,
        *,
        now: datetime | None = None,
    ) -> Report:
        """Aggregate metrics over the window, globally and per conductor.

        Raises:
            ValidationError: If the scope is unknown, or specific without a conductor.
            NotFoundError: If the conductor is not the owner's.
        """
        try:
            scope = ReportScope(scope)
        except ValueError as e:
            raise ValidationError(
                "Tipo de reporte inválido o falta conductor_id para reporte específico"
            ) from e
        if scope is ReportScope.SPECIFIC and conductor_id is None:
            raise ValidationError(
                "Tipo de reporte inválido o falta conductor_id para reporte específico"
            )

        now = now or datetime.now(UTC)
        if scope is ReportScope.SPECIFIC:
            conductor, packages = await self._packages.list_by_conductor(
                owner_id, conductor_id, date_range
            )
            conductors = [conductor]
        else:
            conductors = await self._conductors.list_for_owner(owner_id)
            packages = await self._packages.list_for_owner(owner_id, date_range=date_range)

        by_conductor: dict[UUID, list[Package]] = {c.conductor_id: [] for c in conductors}
        daily: dict[date, dict[str, int]] = {}
        returned_by_zone: dict[str, int] = {}
        for package in packages:
            by_conductor.setdefault(package.conductor_id, []).append(package)
            day = daily.setdefault(package.due_date, {t.value: 0 for t in ShipmentType})
            day[package.shipment_type.value] += 1
            if package.status == PackageStatus.RETURNED:
                zone = package.conductor.zone
                returned_by_zone[zone] = returned_by_zone.get(zone, 0) + 1

        conductor_reports = [
            ConductorReport(
                conductor=conductor,
                stats=compute_stats(by_conductor[conductor.conductor_id]),
                average_pending_delay_days=average_pending_delay(
                    by_conductor[conductor.conductor_id], now
                ),
            )
            for conductor in conductors
        ]

        logger.info(
            "Report generated",
            extra={
                "owner_id": str(owner_id),
                "scope": scope.value,
                "packages": len(packages),
                "conductors": len(conductors),
            },
        )
        return Report(
            scope=scope,
            date_range=date_range,
            generated_at=now,
            stats=compute_stats(packages),
            conductors=conductor_reports,
            daily_by_type=dict(sorted(daily.items())),
            returned_by_zone=returned_by_zone,
        )

    async def export(
        self,
        owner_id: UUID,
        export_format: ExportFormat | str,
        date_range: DateRange,
        *,
        conductor_id: UUID | None = None,
        include_conductors: bool = True,
        include_packages: bool = True,
        now: datetime | None = None,
    ) -> ExportFile:
        """Render the owner's conductors and/or packages.

        The CSV variant holds the packages table, then a blank line and the
        conductors table when both are included.

        Raises:
            ValidationError: For unknown formats or when nothing is included.
        """
        try:
            export_format = ExportFormat(export_format)
        except ValueError as e:
            raise ValidationError(
                "Formato de exportación no soportado",
                details={"format": str(export_format)},
            ) from e
        if not include_conductors and not include_packages:
            raise ValidationError("Debe incluir conductores o paquetes en la exportación")

        now = now or datetime.now(UTC)
        conductors: list[Conductor] = []
        packages: list[Package] = []
        if include_conductors:
            conductors = await self._conductors.list_for_owner(owner_id)
        if include_packages:
            packages = await self._packages.list_for_owner(
                owner_id, date_range=date_range, conductor_id=conductor_id
            )
            packages.sort(key=lambda p: p.due_date, reverse=True)

        if include_conductors and include_packages:
            data_type = "both"
        elif include_packages:
            data_type = "packages"
        else:
            data_type = "conductors"

        if export_format is ExportFormat.CSV:
            content = self._render_csv(
                packages if include_packages else None,
                conductors if include_conductors else None,
            )
            media_type = "text/csv"
        else:
            snapshot: dict[str, Any] = {}
            if include_conductors:
                snapshot["conductors"] = [_conductor_json(c) for c in conductors]
            if include_packages:
                snapshot["packages"] = [_package_json(p) for p in packages]
            content = json.dumps(snapshot, indent=2, ensure_ascii=False)
            media_type = "application/json"

        filename = (
            f"barulogix_export_{data_type}_{now.date().isoformat()}.{export_format.value}"
        )
        self._history.record(
            owner_id,
            OperationType.EXPORT,
            f"Exportación {export_format.value.upper()} de {data_type}",
            details={
                "format": export_format.value,
                "data_type": data_type,
                "conductor_id": str(conductor_id) if conductor_id else None,
            },
            affected_records=len(packages) + len(conductors),
        )
        await self._commit()

        logger.info(
            "Export rendered",
            extra={
                "owner_id": str(owner_id),
                "format": export_format.value,
                "packages": len(packages),
                "conductors": len(conductors),
            },
        )
        return ExportFile(
            filename=filename,
            media_type=media_type,
            content=content,
            package_count=len(packages),
            conductor_count=len(conductors),
        )

    @staticmethod
    def _render_csv(
        packages: list[Package] | None, conductors: list[Conductor] | None
    ) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        if packages is not None:
            writer.writerows(render_packages_csv(packages))
        if conductors is not None:
            if packages is not None:
                buffer.write("\n")
            writer.writerows(render_conductors_csv(conductors))
        return buffer.getvalue()
