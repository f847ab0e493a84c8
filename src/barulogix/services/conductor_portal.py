"""Driver-facing package views.

A logged-in driver sees only its own packages, split into four categories
(type x delivered/pending), and the counts per category.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from barulogix.db.models.base import PackageStatus, ShipmentType
from barulogix.services.errors import ValidationError
from barulogix.services.packages import PackageRepository
from barulogix.services.statistics import compute_stats
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from barulogix.db.models.conductors import Conductor
    from barulogix.db.models.packages import Package
    from barulogix.services.date_ranges import DateRange

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class PackageCategory(str, Enum):
    """Driver listing categories."""

    SHEIN_TEMU_DELIVERED = "shein_temu_delivered"
    SHEIN_TEMU_PENDING = "shein_temu_pending"
    DROPI_DELIVERED = "dropi_delivered"
    DROPI_PENDING = "dropi_pending"

    @property
    def shipment_type(self) -> ShipmentType:
        if self.value.startswith("dropi"):
            return ShipmentType.DROPI
        return ShipmentType.SHEIN_TEMU

    @property
    def status(self) -> PackageStatus:
        if self.value.endswith("delivered"):
            return PackageStatus.DELIVERED
        return PackageStatus.PENDING


def parse_category(value: PackageCategory | str | None) -> PackageCategory:
    """Raises ValidationError when the category is missing or unknown."""
    if not value:
        raise ValidationError("Tipo de paquete requerido")
    try:
        return PackageCategory(value)
    except ValueError as e:
        raise ValidationError(
            "Tipo de paquete inválido",
            details={"type": str(value), "allowed": [c.value for c in PackageCategory]},
        ) from e


@dataclass(frozen=True, slots=True)
class PackagePage:
    """One page of a driver's packages."""

    items: list[Package] = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class ConductorPortalService(StoreService):
    """Package listing and statistics for one driver."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self._packages = PackageRepository(session)

    async def packages(
        self,
        conductor: Conductor,
        category: PackageCategory | str | None,
        date_range: DateRange | None = None,
        *,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> PackagePage:
        """A page of the driver's packages in one category.

        Raises:
            ValidationError: If the category or pagination is invalid.
        """
        category = parse_category(category)
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                "Parámetros de paginación inválidos",
                details={"page": page, "limit": limit},
            )
        items, total = await self._packages.page_for_conductor(
            conductor.conductor_id,
            shipment_type=category.shipment_type,
            status=category.status,
            date_range=date_range,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return PackagePage(items=items, page=page, limit=limit, total=total)

    async def stats(
        self, conductor: Conductor, date_range: DateRange | None = None
    ) -> dict[str, Any]:
        """Counts per category plus the driver's overall totals."""
        _, packages = await self._packages.list_by_conductor(
            conductor.owner_id, conductor.conductor_id, date_range
        )
        stats = compute_stats(packages)
        counts: dict[str, Any] = {}
        for category in PackageCategory:
            breakdown = stats.by_type[category.shipment_type.value]
            counts[category.value] = (
                breakdown.delivered
                if category.status == PackageStatus.DELIVERED
                else breakdown.pending
            )
        counts.update(
            total=stats.total,
            returned=stats.returned,
            delivery_rate=stats.delivery_rate,
            pending_value_dropi=float(stats.pending_value_dropi),
        )
        return counts
