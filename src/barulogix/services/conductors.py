"""Driver (conductor) repository.

Every operation is scoped by the owner identity: a conductor that belongs to
someone else is reported as not found.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select

from barulogix.db.models.conductors import Conductor
from barulogix.db.models.packages import Package
from barulogix.services.errors import ConflictError, NotFoundError, ValidationError
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _required(value: str | None, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(message)
    return cleaned


class ConductorRepository(StoreService):
    """CRUD over conductors owned by one warehouse user."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self._history = OperationHistoryService(session)

    async def list_for_owner(
        self,
        owner_id: UUID,
        *,
        active_only: bool = False,
        zone: str | None = None,
    ) -> list[Conductor]:
        """List the owner's conductors ordered by name.

        Args:
            owner_id: Warehouse owner.
            active_only: Skip deactivated conductors.
            zone: Case-insensitive substring filter on the zone.
        """
        query = select(Conductor).where(Conductor.owner_id == owner_id)
        if active_only:
            query = query.where(Conductor.active.is_(True))
        if zone:
            query = query.where(Conductor.zone.ilike(f"%{zone.strip()}%"))
        result = await self._execute(query.order_by(Conductor.name))
        return list(result.scalars().all())

    async def owned_ids(self, owner_id: UUID, *, zone: str | None = None) -> list[UUID]:
        """Ids of the owner's conductors, optionally narrowed by zone substring."""
        query = select(Conductor.conductor_id).where(Conductor.owner_id == owner_id)
        if zone:
            query = query.where(Conductor.zone.ilike(f"%{zone.strip()}%"))
        result = await self._execute(query)
        return list(result.scalars().all())

    async def list_zones(self, owner_id: UUID) -> list[str]:
        """Distinct zones used by the owner's conductors."""
        query = (
            select(Conductor.zone)
            .where(Conductor.owner_id == owner_id)
            .distinct()
            .order_by(Conductor.zone)
        )
        result = await self._execute(query)
        return list(result.scalars().all())

    async def get(self, owner_id: UUID, conductor_id: UUID) -> Conductor:
        """Fetch one conductor.

        Raises:
            NotFoundError: If absent or owned by someone else.
        """
        query = select(Conductor).where(
            Conductor.conductor_id == conductor_id,
            Conductor.owner_id == owner_id,
        )
        result = await self._execute(query)
        conductor = result.scalar_one_or_none()
        if conductor is None:
            raise NotFoundError(
                "Conductor no encontrado o no pertenece a su bodega",
                details={"conductor_id": str(conductor_id)},
            )
        return conductor

    async def _ensure_name_available(
        self, owner_id: UUID, name: str, exclude_id: UUID | None = None
    ) -> None:
        query = select(Conductor.conductor_id).where(
            Conductor.owner_id == owner_id,
            Conductor.name == name,
        )
        if exclude_id is not None:
            query = query.where(Conductor.conductor_id != exclude_id)
        result = await self._execute(query)
        if result.scalar_one_or_none() is not None:
            raise ConflictError("Ya existe un conductor con ese nombre", details={"name": name})

    async def create(
        self,
        owner_id: UUID,
        *,
        name: str,
        zone: str,
        phone: str | None = None,
    ) -> Conductor:
        """Register a conductor for the owner.

        Raises:
            ValidationError: If name or zone is blank.
            ConflictError: If the owner already has a conductor with that name.
        """
        name = _required(name, "Nombre y zona son obligatorios")
        zone = _required(zone, "Nombre y zona son obligatorios")
        await self._ensure_name_available(owner_id, name)

        conductor = Conductor(
            owner_id=owner_id,
            name=name,
            zone=zone,
            phone=(phone or "").strip() or None,
            active=True,
        )
        self._session.add(conductor)
        await self._commit()

        logger.info(
            "Conductor created",
            extra={"conductor_id": str(conductor.conductor_id), "owner_id": str(owner_id)},
        )
        return conductor

    async def update(
        self,
        owner_id: UUID,
        conductor_id: UUID,
        *,
        name: str,
        zone: str,
        phone: str | None = None,
    ) -> Conductor:
        """Replace a conductor's name, zone and phone.

        Raises:
            ValidationError: If name or zone is blank.
            NotFoundError: If the conductor is not the owner's.
            ConflictError: If another of the owner's conductors has the name.
        """
        name = _required(name, "Nombre y zona son obligatorios")
        zone = _required(zone, "Nombre y zona son obligatorios")
        conductor = await self.get(owner_id, conductor_id)
        await self._ensure_name_available(owner_id, name, exclude_id=conductor_id)

        conductor.name = name
        conductor.zone = zone
        conductor.phone = (phone or "").strip() or None
        conductor.updated_at = datetime.now(UTC)
        await self._commit()
        return conductor

    async def set_active(self, owner_id: UUID, conductor_id: UUID, active: bool) -> Conductor:
        """Activate or deactivate a conductor (soft delete)."""
        conductor = await self.get(owner_id, conductor_id)
        conductor.active = active
        conductor.updated_at = datetime.now(UTC)
        await self._commit()

        logger.info(
            "Conductor %s",
            "activated" if active else "deactivated",
            extra={"conductor_id": str(conductor_id), "owner_id": str(owner_id)},
        )
        return conductor

    async def purge(self, owner_id: UUID, conductor_id: UUID) -> None:
        """Hard-delete a conductor that has no packages.

        Raises:
            NotFoundError: If the conductor is not the owner's.
            ConflictError: If packages are still assigned to it.
        """
        conductor = await self.get(owner_id, conductor_id)

        count_query = select(func.count()).select_from(Package).where(
            Package.conductor_id == conductor_id
        )
        assigned = (await self._execute(count_query)).scalar_one()
        if assigned:
            raise ConflictError(
                "No se puede eliminar el conductor porque tiene paquetes asignados. "
                "Primero reasigne o elimine los paquetes.",
                details={"packages": assigned},
            )

        await self._execute(
            delete(Conductor).where(
                Conductor.conductor_id == conductor_id,
                Conductor.owner_id == owner_id,
            )
        )
        self._history.record(
            owner_id,
            OperationType.CONDUCTOR_PURGE,
            f"Conductor eliminado: {conductor.name}",
            details={"conductor_id": str(conductor_id), "zone": conductor.zone},
            affected_records=1,
        )
        await self._commit()

        logger.info(
            "Conductor purged",
            extra={"conductor_id": str(conductor_id), "owner_id": str(owner_id)},
        )
