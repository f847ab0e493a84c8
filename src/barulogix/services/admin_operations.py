"""Bulk administrative operations and undo.

Each operation acts on the caller's own conductors and packages and records
a history entry with ``can_undo`` set. The entry details keep the ids and
previous values of everything touched, which is what ``undo_last`` uses to
put them back.

Undo always targets the newest undoable entry of the caller. Reverting marks
that entry as undone and appends an ``undo_<type>`` entry; nothing is ever
removed from the history.

Undoable entries come from:
- transfer_packages, change_states, update_dates, change_types,
  toggle_conductors (this module)
- bulk_import (packages service)
- delivery_reconciliation (reconciliation service)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete

from barulogix.db.models.base import PackageStatus, ShipmentType
from barulogix.db.models.packages import Package
from barulogix.services.conductors import ConductorRepository
from barulogix.services.errors import NotFoundError, ValidationError
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.packages import (
    PackageRepository,
    normalize_trackings,
    parse_shipment_type,
)
from barulogix.services.statistics import compute_stats
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from barulogix.db.models.conductors import Conductor

logger = logging.getLogger(__name__)


class TransferMode(str, Enum):
    """Which of the source conductor's packages move."""

    ALL = "all"
    INDIVIDUAL = "individual"
    BULK = "bulk"


@dataclass(frozen=True, slots=True)
class OperationOutcome:
    """Result of an administrative operation or an undo."""

    message: str
    affected_records: int = 0
    details: dict[str, Any] = field(default_factory=dict)


def parse_status(value: PackageStatus | int | str | None) -> PackageStatus:
    """Raises ValidationError for anything but 0, 1 or 2."""
    try:
        return PackageStatus(int(value))  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ValidationError("Estado inválido", details={"new_state": value}) from e


def _parse_optional_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _parse_optional_decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _ids(entries: Sequence[dict[str, Any]], key: str = "package_id") -> list[uuid.UUID]:
    return [uuid.UUID(entry[key]) for entry in entries]


class AdminOperationsService(StoreService):
    """Undoable bulk changes over the caller's conductors and packages."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self._conductors = ConductorRepository(session)
        self._packages = PackageRepository(session)
        self._history = OperationHistoryService(session)

    async def _finish(
        self,
        owner_id: uuid.UUID,
        operation_type: str,
        description: str,
        details: dict[str, Any],
        affected: int,
    ) -> OperationOutcome:
        self._history.record(
            owner_id,
            operation_type,
            description,
            details=details,
            affected_records=affected,
            can_undo=True,
        )
        await self._commit()
        logger.info(
            "Admin operation applied",
            extra={
                "owner_id": str(owner_id),
                "operation_type": operation_type,
                "affected_records": affected,
            },
        )
        return OperationOutcome(message=description, affected_records=affected, details=details)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def transfer_packages(
        self,
        owner_id: uuid.UUID,
        from_conductor_id: uuid.UUID | None,
        to_conductor_id: uuid.UUID | None,
        *,
        mode: TransferMode | str,
        tracking: str | None = None,
        trackings: Sequence[str] | None = None,
        confirmation: bool = False,
    ) -> OperationOutcome:
        """Move packages from one conductor to another.

        Args:
            mode: ``all`` moves every package and needs ``confirmation``;
                ``individual`` moves ``tracking``; ``bulk`` moves ``trackings``.

        Raises:
            ValidationError: For missing or identical conductors, an unknown
                mode, a missing confirmation or an empty tracking list.
            NotFoundError: If a conductor is not the owner's or nothing matches.
        """
        if from_conductor_id is None or to_conductor_id is None:
            raise ValidationError("Ambos conductores son requeridos")
        if from_conductor_id == to_conductor_id:
            raise ValidationError("Los conductores origen y destino deben ser diferentes")
        try:
            mode = TransferMode(mode)
        except ValueError as e:
            raise ValidationError(
                "Tipo de transferencia inválido", details={"transfer_type": str(mode)}
            ) from e

        wanted: list[str] | None = None
        if mode is TransferMode.ALL and not confirmation:
            raise ValidationError(
                "Se requiere confirmación explícita para transferir todos los paquetes"
            )
        if mode is TransferMode.INDIVIDUAL:
            wanted = normalize_trackings([tracking or ""])
        elif mode is TransferMode.BULK:
            wanted = normalize_trackings(trackings or [])
        if wanted is not None and not wanted:
            raise ValidationError("Lista de trackings vacía")

        target = await self._conductors.get(owner_id, to_conductor_id)
        source, packages = await self._packages.list_by_conductor(owner_id, from_conductor_id)
        not_found: list[str] = []
        if wanted is not None:
            by_tracking = {package.tracking: package for package in packages}
            packages = [by_tracking[t] for t in wanted if t in by_tracking]
            not_found = [t for t in wanted if t not in by_tracking]
        if not packages:
            raise NotFoundError(
                "No se encontraron paquetes para transferir", details={"not_found": not_found}
            )

        now = datetime.now(UTC)
        for package in packages:
            package.conductor_id = target.conductor_id
            package.conductor = target
            package.updated_at = now

        details = {
            "from_conductor_id": str(source.conductor_id),
            "to_conductor_id": str(target.conductor_id),
            "transfer_type": mode.value,
            "packages": [
                {"package_id": str(p.package_id), "tracking": p.tracking} for p in packages
            ],
            "not_found": not_found,
        }
        return await self._finish(
            owner_id,
            OperationType.TRANSFER_PACKAGES,
            f"Transferencia de {len(packages)} paquetes de {source.name} a {target.name}",
            details,
            len(packages),
        )

    async def change_states(
        self,
        owner_id: uuid.UUID,
        conductor_id: uuid.UUID,
        new_state: PackageStatus | int | str | None,
    ) -> OperationOutcome:
        """Set the status of every package of a conductor."""
        status = parse_status(new_state)
        conductor, packages = await self._packages.list_by_conductor(owner_id, conductor_id)
        changed = [p for p in packages if p.status != status]

        now = datetime.now(UTC)
        old_states = []
        for package in changed:
            old_states.append({"package_id": str(package.package_id), "old_state": package.status})
            package.status = int(status)
            package.updated_at = now

        return await self._finish(
            owner_id,
            OperationType.CHANGE_STATES,
            f"Cambio de estado a '{status.label}' para {len(changed)} paquetes "
            f"de {conductor.name}",
            {"conductor_id": str(conductor_id), "new_state": int(status), "old_states": old_states},
            len(changed),
        )

    async def update_dates(
        self,
        owner_id: uuid.UUID,
        conductor_id: uuid.UUID,
        new_date: date | None,
    ) -> OperationOutcome:
        """Set the due date of every package of a conductor."""
        if new_date is None:
            raise ValidationError("Fecha requerida")
        conductor, packages = await self._packages.list_by_conductor(owner_id, conductor_id)

        now = datetime.now(UTC)
        old_dates = []
        for package in packages:
            old_dates.append(
                {"package_id": str(package.package_id), "old_date": package.due_date.isoformat()}
            )
            package.due_date = new_date
            package.updated_at = now

        return await self._finish(
            owner_id,
            OperationType.UPDATE_DATES,
            f"Actualización de fecha a {new_date.isoformat()} para {len(packages)} paquetes "
            f"de {conductor.name}",
            {
                "conductor_id": str(conductor_id),
                "new_date": new_date.isoformat(),
                "old_dates": old_dates,
            },
            len(packages),
        )

    async def change_types(
        self,
        owner_id: uuid.UUID,
        conductor_id: uuid.UUID,
        new_type: ShipmentType | str | None,
    ) -> OperationOutcome:
        """Set the shipment type of every package of a conductor.

        Moving to Shein/Temu clears the COD value; the old value is kept in
        the history so undo restores it.
        """
        kind = parse_shipment_type(new_type)
        conductor, packages = await self._packages.list_by_conductor(owner_id, conductor_id)
        changed = [p for p in packages if p.shipment_type != kind]

        now = datetime.now(UTC)
        old_types = []
        for package in changed:
            old_types.append(
                {
                    "package_id": str(package.package_id),
                    "old_type": package.shipment_type.value,
                    "old_value": str(package.value) if package.value is not None else None,
                }
            )
            package.shipment_type = kind
            if kind == ShipmentType.SHEIN_TEMU:
                package.value = None
            package.updated_at = now

        return await self._finish(
            owner_id,
            OperationType.CHANGE_TYPES,
            f"Cambio de tipo a {kind.value} para {len(changed)} paquetes de {conductor.name}",
            {"conductor_id": str(conductor_id), "new_type": kind.value, "old_types": old_types},
            len(changed),
        )

    async def toggle_conductors(self, owner_id: uuid.UUID) -> OperationOutcome:
        """Deactivate every conductor when all are active, else activate all."""
        conductors = await self._conductors.list_for_owner(owner_id)
        if not conductors:
            raise NotFoundError("No se encontraron conductores en su bodega")

        activate = not all(c.active for c in conductors)
        now = datetime.now(UTC)
        old_states = []
        for conductor in conductors:
            old_states.append(
                {"conductor_id": str(conductor.conductor_id), "old_active": conductor.active}
            )
            conductor.active = activate
            conductor.updated_at = now

        verb = "Activación" if activate else "Desactivación"
        return await self._finish(
            owner_id,
            OperationType.TOGGLE_CONDUCTORS,
            f"{verb} de {len(conductors)} conductores",
            {"active": activate, "old_states": old_states},
            len(conductors),
        )

    async def recalculate_stats(self, owner_id: uuid.UUID) -> OperationOutcome:
        """Fresh totals over all of the owner's packages (read only, not logged)."""
        packages = await self._packages.list_for_owner(owner_id)
        stats = compute_stats(packages)
        return OperationOutcome(
            message="Estadísticas recalculadas",
            affected_records=stats.total,
            details=stats.to_dict(),
        )

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    async def undo_last(
        self, owner_id: uuid.UUID, now: datetime | None = None
    ) -> OperationOutcome:
        """Revert the caller's newest undoable operation.

        Raises:
            ValidationError: If nothing can be undone or the newest entry's
                type has no revert.
            NotFoundError: If a conductor the revert needs no longer exists.
        """
        entry = await self._history.latest_undoable(owner_id)
        if entry is None:
            raise ValidationError("No hay operaciones para deshacer")

        handlers: dict[str, Callable[[uuid.UUID, dict[str, Any]], Awaitable[tuple[str, int]]]]
        handlers = {
            OperationType.CHANGE_STATES: self._revert_states,
            OperationType.UPDATE_DATES: self._revert_dates,
            OperationType.CHANGE_TYPES: self._revert_types,
            OperationType.TRANSFER_PACKAGES: self._revert_transfer,
            OperationType.TOGGLE_CONDUCTORS: self._revert_toggle,
            OperationType.BULK_IMPORT: self._revert_bulk_import,
            OperationType.DELIVERY_RECONCILIATION: self._revert_reconciliation,
        }
        handler = handlers.get(entry.operation_type)
        if handler is None:
            raise ValidationError(
                "Tipo de operación no soportada para deshacer",
                details={"operation_type": entry.operation_type},
            )

        message, reverted = await handler(owner_id, entry.details or {})

        now = now or datetime.now(UTC)
        entry.can_undo = False
        entry.undone_at = now
        undo_details = {"original_operation_id": str(entry.history_id), "reverted": reverted}
        self._history.record(
            owner_id,
            f"{OperationType.UNDO_PREFIX}{entry.operation_type}",
            f"Deshacer: {entry.description}",
            details=undo_details,
            affected_records=reverted,
        )
        await self._commit()

        logger.info(
            "Operation undone",
            extra={
                "owner_id": str(owner_id),
                "operation_type": entry.operation_type,
                "reverted": reverted,
            },
        )
        return OperationOutcome(message=message, affected_records=reverted, details=undo_details)

    async def _packages_by_id(
        self, owner_id: uuid.UUID, entries: Sequence[dict[str, Any]]
    ) -> dict[str, Package]:
        packages = await self._packages.find_many(owner_id, _ids(entries))
        return {str(package.package_id): package for package in packages}

    async def _revert_states(self, owner_id: uuid.UUID, details: dict[str, Any]) -> tuple[str, int]:
        entries = details.get("old_states", [])
        packages = await self._packages_by_id(owner_id, entries)
        now = datetime.now(UTC)
        for entry in entries:
            package = packages.get(entry["package_id"])
            if package is not None:
                package.status = int(entry["old_state"])
                package.updated_at = now
        return "Estados revertidos exitosamente", len(packages)

    async def _revert_dates(self, owner_id: uuid.UUID, details: dict[str, Any]) -> tuple[str, int]:
        entries = details.get("old_dates", [])
        packages = await self._packages_by_id(owner_id, entries)
        now = datetime.now(UTC)
        for entry in entries:
            package = packages.get(entry["package_id"])
            if package is not None:
                package.due_date = date.fromisoformat(entry["old_date"])
                package.updated_at = now
        return "Fechas revertidas exitosamente", len(packages)

    async def _revert_types(self, owner_id: uuid.UUID, details: dict[str, Any]) -> tuple[str, int]:
        entries = details.get("old_types", [])
        packages = await self._packages_by_id(owner_id, entries)
        now = datetime.now(UTC)
        for entry in entries:
            package = packages.get(entry["package_id"])
            if package is not None:
                package.shipment_type = ShipmentType(entry["old_type"])
                package.value = _parse_optional_decimal(entry.get("old_value"))
                package.updated_at = now
        return "Tipos revertidos exitosamente", len(packages)

    async def _revert_transfer(
        self, owner_id: uuid.UUID, details: dict[str, Any]
    ) -> tuple[str, int]:
        source: Conductor = await self._conductors.get(
            owner_id, uuid.UUID(details["from_conductor_id"])
        )
        packages = await self._packages_by_id(owner_id, details.get("packages", []))
        now = datetime.now(UTC)
        for package in packages.values():
            package.conductor_id = source.conductor_id
            package.conductor = source
            package.updated_at = now
        return "Transferencia revertida exitosamente", len(packages)

    async def _revert_toggle(self, owner_id: uuid.UUID, details: dict[str, Any]) -> tuple[str, int]:
        old_active = {e["conductor_id"]: e["old_active"] for e in details.get("old_states", [])}
        conductors = await self._conductors.list_for_owner(owner_id)
        now = datetime.now(UTC)
        reverted = 0
        for conductor in conductors:
            key = str(conductor.conductor_id)
            if key in old_active:
                conductor.active = bool(old_active[key])
                conductor.updated_at = now
                reverted += 1
        return "Estados de conductores revertidos exitosamente", reverted

    async def _revert_bulk_import(
        self, owner_id: uuid.UUID, details: dict[str, Any]
    ) -> tuple[str, int]:
        trackings = details.get("trackings") or []
        if not trackings:
            raise ValidationError("La carga masiva no registró trackings para deshacer")
        conductor_ids = await self._conductors.owned_ids(owner_id)
        if not conductor_ids:
            return "Paquetes masivos eliminados exitosamente", 0
        result = await self._execute(
            delete(Package).where(
                Package.tracking.in_(trackings),
                Package.conductor_id.in_(conductor_ids),
            )
        )
        return "Paquetes masivos eliminados exitosamente", result.rowcount or 0

    async def _revert_reconciliation(
        self, owner_id: uuid.UUID, details: dict[str, Any]
    ) -> tuple[str, int]:
        entries = details.get("packages") or []
        if not entries:
            raise ValidationError("La conciliación no registró paquetes para deshacer")
        packages = await self._packages_by_id(owner_id, entries)
        now = datetime.now(UTC)
        for entry in entries:
            package = packages.get(entry["package_id"])
            if package is not None:
                package.status = int(entry["previous_status"])
                package.client_delivery_date = _parse_optional_date(
                    entry.get("previous_client_delivery_date")
                )
                package.updated_at = now
        return "Conciliación revertida exitosamente", len(packages)
