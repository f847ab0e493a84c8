"""Package repository.

CRUD, search and bulk operations over packages. Packages are owned through
their conductor, so every read and write is scoped to the caller's conductor
set. Tracking numbers are unique across the whole table; the uniqueness check
is a case-sensitive exact match and is not limited to the caller's packages.

Input rules shared by create and update:
- tracking, conductor, shipment type and due date are required
- status starts as pending and defaults to pending on update
- value is kept only for Dropi packages and nulled for Shein/Temu
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import contains_eager

from barulogix.db.models.base import PackageStatus, ShipmentType
from barulogix.db.models.conductors import Conductor
from barulogix.db.models.packages import MAX_TRACKING_LENGTH, Package
from barulogix.services.conductors import ConductorRepository
from barulogix.services.errors import ConflictError, NotFoundError, ValidationError
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql import Select

    from barulogix.services.date_ranges import DateRange

logger = logging.getLogger(__name__)

DEFAULT_MIN_TRACKING_LENGTH = 3

REQUIRED_FIELDS_MESSAGE = "Tracking, conductor, tipo y fecha de entrega son requeridos"

# Characters stripped from pasted money amounts before parsing
_NON_NUMERIC = re.compile(r"[^\d.\-]")


@dataclass(frozen=True, slots=True)
class PackageFilters:
    """Optional, combinable search criteria.

    Attributes:
        tracking: Case-insensitive substring of the tracking.
        conductor_id: Exact conductor.
        shipment_type: Exact shipment type.
        status: Exact status.
        zone: Case-insensitive substring of the conductor zone.
    """

    tracking: str | None = None
    conductor_id: UUID | None = None
    shipment_type: ShipmentType | None = None
    status: PackageStatus | None = None
    zone: str | None = None

    def __post_init__(self) -> None:
        # Whitespace-only text would turn into a match-everything pattern
        for name in ("tracking", "zone"):
            text = getattr(self, name)
            object.__setattr__(self, name, (text.strip() or None) if text else None)

    def is_empty(self) -> bool:
        """True when no criterion is set."""
        return all(
            value is None
            for value in (
                self.tracking,
                self.conductor_id,
                self.shipment_type,
                self.status,
                self.zone,
            )
        )


@dataclass(frozen=True, slots=True)
class BulkLookupResult:
    """Outcome of a bulk tracking lookup."""

    found: list[Package]
    not_found: list[str]
    total_requested: int


@dataclass(frozen=True, slots=True)
class BulkImportResult:
    """Outcome of a pasted bulk import."""

    inserted: list[Package] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    total_processed: int = 0


def parse_shipment_type(value: ShipmentType | str | None) -> ShipmentType:
    """Accept the enum, its wire value or its import alias.

    Raises:
        ValidationError: For unknown shipment types.
    """
    if isinstance(value, ShipmentType):
        return value
    aliases = {
        "shein_temu": ShipmentType.SHEIN_TEMU,
        "dropi": ShipmentType.DROPI,
    }
    if value:
        for shipment_type in ShipmentType:
            if value == shipment_type.value:
                return shipment_type
        if value.lower() in aliases:
            return aliases[value.lower()]
    raise ValidationError("Tipo de paquete inválido", details={"shipment_type": value})


def parse_amount(raw: str) -> Decimal | None:
    """Parse a pasted money amount, ignoring currency symbols and spaces.

    Returns:
        The amount, or None when nothing numeric remains.
    """
    cleaned = _NON_NUMERIC.sub("", raw)
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def normalize_trackings(trackings: Iterable[str]) -> list[str]:
    """Trim, drop blanks and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for raw in trackings:
        tracking = (raw or "").strip()
        if tracking:
            seen.setdefault(tracking, None)
    return list(seen)


def _check_tracking_length(tracking: str) -> None:
    if len(tracking) > MAX_TRACKING_LENGTH:
        raise ValidationError(
            "Tracking muy largo",
            details=f"Máximo {MAX_TRACKING_LENGTH} caracteres",
        )


def _coerce_value(shipment_type: ShipmentType, value: Decimal | float | None) -> Decimal | None:
    if shipment_type != ShipmentType.DROPI or value is None:
        return None
    amount = Decimal(str(value))
    if amount < 0:
        raise ValidationError("Valor inválido", details="El valor no puede ser negativo")
    return amount


class PackageRepository(StoreService):
    """Owner-scoped package operations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self._conductors = ConductorRepository(session)
        self._history = OperationHistoryService(session)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _owned_query(owner_id: UUID) -> Select[tuple[Package]]:
        return (
            select(Package)
            .join(Package.conductor)
            .where(Conductor.owner_id == owner_id)
            .options(contains_eager(Package.conductor))
        )

    @staticmethod
    def _apply_date_range(query: Select[Any], date_range: DateRange | None) -> Select[Any]:
        if date_range is None:
            return query
        if date_range.start is not None:
            query = query.where(Package.due_date >= date_range.start)
        if date_range.end is not None:
            query = query.where(Package.due_date <= date_range.end)
        return query

    async def _tracking_taken(self, tracking: str, exclude_id: UUID | None = None) -> bool:
        query = select(Package.package_id).where(Package.tracking == tracking)
        if exclude_id is not None:
            query = query.where(Package.package_id != exclude_id)
        result = await self._execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def _resolve_conductor(self, owner_id: UUID, conductor_id: UUID) -> Conductor:
        try:
            return await self._conductors.get(owner_id, conductor_id)
        except NotFoundError:
            raise NotFoundError(
                "Conductor no encontrado o no pertenece a su bodega",
                details={"conductor_id": str(conductor_id)},
            ) from None

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_id: UUID,
        *,
        tracking: str | None,
        conductor_id: UUID | None,
        shipment_type: ShipmentType | str | None,
        due_date: date | None,
        value: Decimal | float | None = None,
    ) -> Package:
        """Create a pending package.

        Raises:
            ValidationError: If a required field is missing or malformed.
            NotFoundError: If the conductor is not the owner's.
            ConflictError: If the tracking already exists.
        """
        tracking = (tracking or "").strip()
        if not tracking or conductor_id is None or not shipment_type or due_date is None:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        _check_tracking_length(tracking)
        kind = parse_shipment_type(shipment_type)
        amount = _coerce_value(kind, value)

        conductor = await self._resolve_conductor(owner_id, conductor_id)
        if await self._tracking_taken(tracking):
            raise ConflictError("El tracking ya existe", details={"tracking": tracking})

        package = Package(
            tracking=tracking,
            conductor_id=conductor.conductor_id,
            conductor=conductor,
            shipment_type=kind,
            status=int(PackageStatus.PENDING),
            due_date=due_date,
            value=amount,
        )
        self._session.add(package)
        await self._commit()

        logger.info(
            "Package created",
            extra={
                "package_id": str(package.package_id),
                "conductor_id": str(conductor.conductor_id),
                "shipment_type": kind.value,
            },
        )
        return package

    async def update(
        self,
        owner_id: UUID,
        package_id: UUID,
        *,
        tracking: str | None,
        conductor_id: UUID | None,
        shipment_type: ShipmentType | str | None,
        due_date: date | None,
        status: PackageStatus | int | None = None,
        value: Decimal | float | None = None,
        client_delivery_date: date | None = None,
    ) -> Package:
        """Replace a package's editable fields.

        Any status may be set directly; an omitted status resets to pending.
        The client delivery date is only kept for delivered packages.

        Raises:
            ValidationError: If a required field is missing or malformed.
            NotFoundError: If the package or new conductor is not the owner's.
            ConflictError: If another package already has the tracking.
        """
        tracking = (tracking or "").strip()
        if not tracking or conductor_id is None or not shipment_type or due_date is None:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        _check_tracking_length(tracking)
        kind = parse_shipment_type(shipment_type)
        amount = _coerce_value(kind, value)
        try:
            new_status = PackageStatus(PackageStatus.PENDING if status is None else status)
        except ValueError as e:
            raise ValidationError("Estado inválido", details={"status": status}) from e

        package = await self.get(owner_id, package_id)
        conductor = await self._resolve_conductor(owner_id, conductor_id)
        if await self._tracking_taken(tracking, exclude_id=package_id):
            raise ConflictError(
                "Ya existe otro paquete con ese tracking", details={"tracking": tracking}
            )

        package.tracking = tracking
        package.conductor_id = conductor.conductor_id
        package.conductor = conductor
        package.shipment_type = kind
        package.status = int(new_status)
        package.due_date = due_date
        package.value = amount
        if new_status != PackageStatus.DELIVERED:
            package.client_delivery_date = None
        elif client_delivery_date is not None:
            package.client_delivery_date = client_delivery_date
        package.updated_at = datetime.now(UTC)
        await self._commit()

        logger.info(
            "Package updated",
            extra={"package_id": str(package_id), "status": int(new_status)},
        )
        return package

    async def delete(self, owner_id: UUID, package_id: UUID) -> None:
        """Hard-delete one of the owner's packages.

        Raises:
            NotFoundError: If the package is not the owner's.
        """
        package = await self.get(owner_id, package_id)
        await self._execute(delete(Package).where(Package.package_id == package.package_id))
        await self._commit()

        logger.info(
            "Package deleted",
            extra={"package_id": str(package_id), "owner_id": str(owner_id)},
        )

    async def get(self, owner_id: UUID, package_id: UUID) -> Package:
        """Fetch one package with its conductor.

        Raises:
            NotFoundError: If absent or not owned by the caller.
        """
        query = self._owned_query(owner_id).where(Package.package_id == package_id)
        result = await self._execute(query)
        package = result.scalar_one_or_none()
        if package is None:
            raise NotFoundError("Paquete no encontrado", details={"package_id": str(package_id)})
        return package

    # ------------------------------------------------------------------
    # Listing and search
    # ------------------------------------------------------------------

    async def list_for_owner(
        self,
        owner_id: UUID,
        *,
        date_range: DateRange | None = None,
        conductor_id: UUID | None = None,
    ) -> list[Package]:
        """All of the owner's packages, newest first, optionally filtered."""
        query = self._apply_date_range(self._owned_query(owner_id), date_range)
        if conductor_id is not None:
            query = query.where(Package.conductor_id == conductor_id)
        result = await self._execute(query.order_by(Package.created_at.desc()))
        return list(result.scalars().all())

    async def search(
        self,
        owner_id: UUID,
        filters: PackageFilters,
        date_range: DateRange | None = None,
    ) -> list[Package]:
        """Search the owner's packages.

        The zone criterion is resolved to a conductor set first; when no
        conductor matches, the result is empty without querying packages.

        Raises:
            ValidationError: If no criterion is supplied.
        """
        if filters.is_empty() and (date_range is None or not date_range.is_bounded):
            raise ValidationError("Debe proporcionar al menos un criterio de búsqueda")

        query = self._apply_date_range(self._owned_query(owner_id), date_range)

        if filters.zone:
            zone_ids = await self._conductors.owned_ids(owner_id, zone=filters.zone)
            if not zone_ids:
                return []
            query = query.where(Package.conductor_id.in_(zone_ids))
        if filters.tracking:
            query = query.where(Package.tracking.ilike(f"%{filters.tracking}%"))
        if filters.conductor_id is not None:
            query = query.where(Package.conductor_id == filters.conductor_id)
        if filters.shipment_type is not None:
            query = query.where(Package.shipment_type == filters.shipment_type)
        if filters.status is not None:
            query = query.where(Package.status == int(filters.status))

        result = await self._execute(query.order_by(Package.created_at.desc()))
        return list(result.scalars().all())

    async def list_by_conductor(
        self,
        owner_id: UUID,
        conductor_id: UUID,
        date_range: DateRange | None = None,
    ) -> tuple[Conductor, list[Package]]:
        """One conductor and its packages ordered by due date.

        Raises:
            NotFoundError: If the conductor is not the owner's.
        """
        conductor = await self._resolve_conductor(owner_id, conductor_id)
        query = self._apply_date_range(
            self._owned_query(owner_id).where(Package.conductor_id == conductor_id),
            date_range,
        )
        result = await self._execute(query.order_by(Package.due_date.desc()))
        return conductor, list(result.scalars().all())

    async def page_for_conductor(
        self,
        conductor_id: UUID,
        *,
        shipment_type: ShipmentType,
        status: PackageStatus,
        date_range: DateRange | None = None,
        limit: int,
        offset: int = 0,
    ) -> tuple[list[Package], int]:
        """One page of a conductor's packages of a type and status.

        Returns:
            The page ordered by due date (newest first) and the total number
            of matching packages.
        """
        base = self._apply_date_range(
            select(Package).where(
                Package.conductor_id == conductor_id,
                Package.shipment_type == shipment_type,
                Package.status == int(status),
            ),
            date_range,
        )
        count_query = select(func.count()).select_from(base.subquery())
        total = (await self._execute(count_query)).scalar_one()

        page_query = (
            base.order_by(Package.due_date.desc(), Package.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._execute(page_query)
        return list(result.scalars().all()), total

    async def list_pending_due_before(
        self,
        owner_id: UUID,
        before: date,
        *,
        conductor_id: UUID | None = None,
        package_ids: Iterable[UUID] | None = None,
    ) -> list[Package]:
        """Pending packages whose due date is strictly before ``before``."""
        query = self._owned_query(owner_id).where(
            Package.status == int(PackageStatus.PENDING),
            Package.due_date < before,
        )
        if conductor_id is not None:
            query = query.where(Package.conductor_id == conductor_id)
        if package_ids is not None:
            query = query.where(Package.package_id.in_(list(package_ids)))
        result = await self._execute(query.order_by(Package.due_date))
        return list(result.scalars().all())

    async def find_many(self, owner_id: UUID, package_ids: Iterable[UUID]) -> list[Package]:
        """The owner's packages among ``package_ids`` (missing ids are skipped)."""
        ids = list(package_ids)
        if not ids:
            return []
        query = self._owned_query(owner_id).where(Package.package_id.in_(ids))
        result = await self._execute(query)
        return list(result.scalars().all())

    async def find_by_tracking(self, tracking: str, conductor_ids: list[UUID]) -> Package | None:
        """Exact tracking match restricted to a conductor set."""
        if not conductor_ids:
            return None
        query = (
            select(Package)
            .join(Package.conductor)
            .where(Package.tracking == tracking, Package.conductor_id.in_(conductor_ids))
            .options(contains_eager(Package.conductor))
        )
        result = await self._execute(query)
        return result.scalar_one_or_none()

    async def bulk_find_by_tracking(
        self, owner_id: UUID, trackings: Iterable[str]
    ) -> BulkLookupResult:
        """Look up many trackings within the owner's conductors.

        Blank entries are dropped and duplicates collapsed before lookup, so
        ``len(found) + len(not_found) == total_requested``.
        """
        requested = normalize_trackings(trackings)
        if not requested:
            raise ValidationError("Debe proporcionar al menos un tracking")

        conductor_ids = await self._conductors.owned_ids(owner_id)
        by_tracking: dict[str, Package] = {}
        if conductor_ids:
            query = (
                select(Package)
                .join(Package.conductor)
                .where(
                    Package.tracking.in_(requested),
                    Package.conductor_id.in_(conductor_ids),
                )
                .options(contains_eager(Package.conductor))
            )
            result = await self._execute(query)
            by_tracking = {package.tracking: package for package in result.scalars().all()}

        found = [by_tracking[t] for t in requested if t in by_tracking]
        not_found = [t for t in requested if t not in by_tracking]

        logger.info(
            "Bulk tracking lookup",
            extra={
                "owner_id": str(owner_id),
                "requested": len(requested),
                "found": len(found),
            },
        )
        return BulkLookupResult(found=found, not_found=not_found, total_requested=len(requested))

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    async def bulk_import(
        self,
        owner_id: UUID,
        *,
        shipment_type: ShipmentType | str | None,
        data: str | None,
        conductor_id: UUID | None,
        due_date: date | None,
        min_tracking_length: int = DEFAULT_MIN_TRACKING_LENGTH,
    ) -> BulkImportResult:
        """Create pending packages from pasted spreadsheet text.

        Shein/Temu data has one tracking per line. Dropi data has
        ``tracking<TAB>value`` per line and the value must be positive.
        Blank lines are ignored; line numbers in errors count the remaining
        lines from 1. Rejected lines are skipped and reported, valid ones
        are inserted together.

        Raises:
            ValidationError: If a required field is missing or the type is unknown.
            NotFoundError: If the conductor is not the owner's.
        """
        if not shipment_type or not data or conductor_id is None or due_date is None:
            raise ValidationError("Tipo, datos, conductor y fecha de entrega son requeridos")
        kind = parse_shipment_type(shipment_type)
        conductor = await self._resolve_conductor(owner_id, conductor_id)

        lines = [line.strip() for line in data.splitlines() if line.strip()]
        errors: list[str] = []
        candidates: list[tuple[int, str, Decimal | None]] = []

        for number, line in enumerate(lines, start=1):
            if kind == ShipmentType.DROPI:
                parts = line.split("\t")
                if len(parts) < 2:
                    errors.append(
                        f"Línea {number}: Formato incorrecto. Debe tener tracking y valor "
                        f'separados por tab: "{line}"'
                    )
                    continue
                tracking, raw_value = parts[0].strip(), parts[1].strip()
            else:
                tracking, raw_value = line, None

            if len(tracking) < min_tracking_length:
                errors.append(f'Línea {number}: Tracking muy corto: "{tracking}"')
                continue
            if len(tracking) > MAX_TRACKING_LENGTH:
                errors.append(
                    f"Línea {number}: Tracking muy largo "
                    f"(máximo {MAX_TRACKING_LENGTH} caracteres)"
                )
                continue

            amount = None
            if raw_value is not None:
                amount = parse_amount(raw_value)
                if amount is None or amount <= 0:
                    errors.append(f'Línea {number}: Valor inválido: "{raw_value}"')
                    continue

            candidates.append((number, tracking, amount))

        existing: set[str] = set()
        if candidates:
            query = select(Package.tracking).where(
                Package.tracking.in_([tracking for _, tracking, _ in candidates])
            )
            existing = set((await self._execute(query)).scalars().all())

        seen: set[str] = set()
        packages: list[Package] = []
        for number, tracking, amount in candidates:
            if tracking in existing or tracking in seen:
                errors.append(f'Línea {number}: Tracking ya existe: "{tracking}"')
                continue
            seen.add(tracking)
            packages.append(
                Package(
                    tracking=tracking,
                    conductor_id=conductor.conductor_id,
                    conductor=conductor,
                    shipment_type=kind,
                    status=int(PackageStatus.PENDING),
                    due_date=due_date,
                    value=amount,
                )
            )

        if packages:
            self._session.add_all(packages)
            self._history.record(
                owner_id,
                OperationType.BULK_IMPORT,
                f"Carga masiva de {len(packages)} paquetes {kind.value}",
                details={
                    "conductor_id": str(conductor.conductor_id),
                    "due_date": due_date.isoformat(),
                    "errors": len(errors),
                    "trackings": [package.tracking for package in packages],
                },
                affected_records=len(packages),
                can_undo=True,
            )
            await self._commit()

        logger.info(
            "Bulk import processed",
            extra={
                "owner_id": str(owner_id),
                "conductor_id": str(conductor.conductor_id),
                "inserted": len(packages),
                "errors": len(errors),
            },
        )
        return BulkImportResult(inserted=packages, errors=errors, total_processed=len(lines))
