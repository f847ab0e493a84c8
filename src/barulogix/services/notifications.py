"""Notification dispatcher.

Creates in-app notifications for conductors (delay alerts and free-text
broadcasts from the warehouse) and serves the conductor's inbox. Every send
operation is scoped to the owner: packages and conductors that belong to
another warehouse never resolve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update

from barulogix.db.models.base import NotificationKind, ShipmentType
from barulogix.db.models.conductors import Conductor
from barulogix.db.models.notifications import Notification
from barulogix.services.conductors import ConductorRepository
from barulogix.services.errors import ForbiddenError, NotFoundError, ValidationError
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.packages import PackageRepository
from barulogix.services.statistics import DEFAULT_GRACE_DAYS, days_late
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from barulogix.db.models.packages import Package

logger = logging.getLogger(__name__)

DELAY_ALERT_TITLE = "Paquete Atrasado - Priorizar"
CUSTOM_MESSAGE_TITLE = "Mensaje de Bodega"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def format_amount(value: Decimal | float | int) -> str:
    """Format a peso amount the way Colombian locales print it (50.000,5)."""
    amount = Decimal(str(value))
    integral = int(amount)
    text = f"{integral:,}".replace(",", ".")
    fraction = abs(amount - integral)
    if fraction:
        digits = f"{fraction.normalize():f}".split(".")[1][:3]
        text = f"{text},{digits}"
    return text


def delay_alert_message(package: Package, late_days: int) -> str:
    """Fixed Spanish alert body for an overdue package."""
    message = (
        f"El paquete {package.tracking} está atrasado {late_days} días desde su fecha "
        f"de entrega programada ({package.due_date.isoformat()}). "
        "Por favor, prioriza su entrega."
    )
    if package.shipment_type == ShipmentType.DROPI and package.value:
        message += f" Valor: ${format_amount(package.value)}"
    return message


def time_ago(created_at: datetime, now: datetime) -> str:
    """Relative Spanish age label for an inbox item."""
    elapsed = int((now - created_at).total_seconds())
    hours = elapsed // 3600
    if hours < 1:
        minutes = elapsed // 60
        return "Hace un momento" if minutes <= 1 else f"Hace {minutes} minutos"
    if hours < 24:
        return "Hace 1 hora" if hours == 1 else f"Hace {hours} horas"
    days = hours // 24
    return "Hace 1 día" if days == 1 else f"Hace {days} días"


@dataclass(frozen=True, slots=True)
class ConductorAlertSummary:
    """Alerts sent to one conductor in a bulk batch."""

    conductor_id: UUID
    conductor_name: str
    total_alerts: int
    trackings: list[str]


@dataclass(frozen=True, slots=True)
class BulkAlertResult:
    """Outcome of a bulk delay alert batch."""

    notifications: list[Notification]
    conductor_stats: list[ConductorAlertSummary]

    @property
    def total_packages(self) -> int:
        return len(self.notifications)


@dataclass(frozen=True, slots=True)
class CustomMessageResult:
    """Outcome of a custom broadcast."""

    notifications: list[Notification]
    conductors: list[Conductor]
    message: str


@dataclass(frozen=True, slots=True)
class InboxItem:
    """Notification plus its relative age label."""

    notification: Notification
    time_ago: str


@dataclass(frozen=True, slots=True)
class InboxPage:
    """One page of a conductor's inbox."""

    conductor: Conductor
    items: list[InboxItem]
    total: int
    unread: int
    limit: int
    offset: int
    unread_only: bool

    @property
    def has_more(self) -> bool:
        return self.total > self.offset + self.limit


@dataclass(slots=True)
class DelayedConductorStats:
    """Delay summary for one conductor."""

    conductor: Conductor
    total_delayed: int = 0
    total_days_late: int = 0
    value_at_risk: Decimal = Decimal("0")
    package_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DelayedPackagesView:
    """Overdue pending packages with per-conductor stats."""

    cutoff: date
    packages: list[tuple[Package, int]]
    conductor_stats: list[DelayedConductorStats]

    @property
    def total_delayed(self) -> int:
        return len(self.packages)


class NotificationDispatcher(StoreService):
    """Sends and reads conductor notifications."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self._packages = PackageRepository(session)
        self._conductors = ConductorRepository(session)
        self._history = OperationHistoryService(session)

    # ------------------------------------------------------------------
    # Delay alerts
    # ------------------------------------------------------------------

    async def send_delay_alert(
        self,
        owner_id: UUID,
        package_id: UUID,
        conductor_id: UUID,
        late_days: int,
    ) -> Notification:
        """Alert a conductor about one overdue package.

        Raises:
            ValidationError: If days late is not positive or the conductor
                does not match the package.
            NotFoundError: If the package is not the owner's.
        """
        if late_days is None or late_days <= 0:
            raise ValidationError(
                "Faltan campos requeridos",
                details="package_id, conductor_id y dias_atraso son obligatorios",
            )
        try:
            package = await self._packages.get(owner_id, package_id)
        except NotFoundError:
            raise NotFoundError(
                "Paquete no encontrado o no pertenece a su bodega",
                details={"package_id": str(package_id)},
            ) from None
        if package.conductor_id != conductor_id:
            raise ValidationError("El conductor no coincide con el paquete")

        notification = Notification(
            conductor_id=conductor_id,
            owner_id=owner_id,
            kind=NotificationKind.DELAY_ALERT,
            title=DELAY_ALERT_TITLE,
            message=delay_alert_message(package, late_days),
            package_id=package.package_id,
            is_read=False,
        )
        self._session.add(notification)
        await self._commit()

        logger.info(
            "Delay alert sent",
            extra={
                "notification_id": str(notification.notification_id),
                "package_id": str(package_id),
                "conductor_id": str(conductor_id),
            },
        )
        return notification

    async def send_bulk_delay_alerts(
        self,
        owner_id: UUID,
        package_ids: Sequence[UUID],
        now: datetime | None = None,
    ) -> BulkAlertResult:
        """Alert every conductor holding one of the given packages.

        Days late are computed from the due date; packages that are not the
        owner's are skipped.

        Raises:
            ValidationError: If the id list is empty.
            NotFoundError: If none of the packages is the owner's.
        """
        if not package_ids:
            raise ValidationError(
                "Lista de paquetes requerida",
                details="package_ids debe ser un array no vacío",
            )
        now = now or datetime.now(UTC)
        packages = await self._packages.find_many(owner_id, package_ids)
        if not packages:
            raise NotFoundError("No se encontraron paquetes válidos")

        notifications: list[Notification] = []
        grouped: dict[UUID, list[Package]] = {}
        for package in packages:
            notifications.append(
                Notification(
                    conductor_id=package.conductor_id,
                    owner_id=owner_id,
                    kind=NotificationKind.DELAY_ALERT,
                    title=DELAY_ALERT_TITLE,
                    message=delay_alert_message(package, days_late(package.due_date, now)),
                    package_id=package.package_id,
                    is_read=False,
                )
            )
            grouped.setdefault(package.conductor_id, []).append(package)

        conductor_stats = [
            ConductorAlertSummary(
                conductor_id=conductor_id,
                conductor_name=items[0].conductor.name,
                total_alerts=len(items),
                trackings=[p.tracking for p in items],
            )
            for conductor_id, items in grouped.items()
        ]

        self._session.add_all(notifications)
        self._history.record(
            owner_id,
            OperationType.DELAY_ALERTS,
            f"Alertas de atraso enviadas: {len(notifications)}",
            details={
                "package_ids": [str(p.package_id) for p in packages],
                "conductors": len(conductor_stats),
            },
            affected_records=len(notifications),
        )
        await self._commit()

        logger.info(
            "Bulk delay alerts sent",
            extra={
                "owner_id": str(owner_id),
                "notifications": len(notifications),
                "conductors": len(conductor_stats),
            },
        )
        return BulkAlertResult(notifications=notifications, conductor_stats=conductor_stats)

    # ------------------------------------------------------------------
    # Custom messages
    # ------------------------------------------------------------------

    async def send_custom_message(
        self,
        owner_id: UUID,
        message: str | None,
        *,
        conductor_ids: Sequence[UUID] | None = None,
        send_to_all: bool = False,
    ) -> CustomMessageResult:
        """Broadcast free text to selected or all active conductors.

        Raises:
            ValidationError: If the message is blank, no target is given, or
                an explicit id does not resolve to an active owned conductor.
            NotFoundError: If the resolved target set is empty.
        """
        text = (message or "").strip()
        if not text:
            raise ValidationError("Mensaje requerido", details="El mensaje no puede estar vacío")
        if not send_to_all and not conductor_ids:
            raise ValidationError(
                "Conductores requeridos",
                details="Debe seleccionar al menos un conductor o enviar a todos",
            )

        query = select(Conductor).where(
            Conductor.owner_id == owner_id,
            Conductor.active.is_(True),
        )
        requested: set[UUID] = set()
        if not send_to_all:
            requested = set(conductor_ids or [])
            query = query.where(Conductor.conductor_id.in_(requested))
        result = await self._execute(query.order_by(Conductor.name))
        targets = list(result.scalars().all())

        if not send_to_all and len(targets) != len(requested):
            raise ValidationError(
                "Algunos conductores no fueron encontrados o no pertenecen a su bodega",
                details={
                    "missing": sorted(
                        str(i) for i in requested - {c.conductor_id for c in targets}
                    )
                },
            )
        if not targets:
            raise NotFoundError("No se encontraron conductores válidos")

        notifications = [
            Notification(
                conductor_id=conductor.conductor_id,
                owner_id=owner_id,
                kind=NotificationKind.CUSTOM_MESSAGE,
                title=CUSTOM_MESSAGE_TITLE,
                message=text,
                is_read=False,
            )
            for conductor in targets
        ]
        self._session.add_all(notifications)
        self._history.record(
            owner_id,
            OperationType.CUSTOM_MESSAGE,
            f"Mensaje enviado a {len(targets)} conductores",
            details={"send_to_all": send_to_all, "message": text[:200]},
            affected_records=len(notifications),
        )
        await self._commit()

        logger.info(
            "Custom message sent",
            extra={"owner_id": str(owner_id), "conductors": len(targets)},
        )
        return CustomMessageResult(notifications=notifications, conductors=targets, message=text)

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    async def list_for_conductor(
        self,
        owner_id: UUID,
        conductor_id: UUID,
        *,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        unread_only: bool = False,
        now: datetime | None = None,
    ) -> InboxPage:
        """A page of a conductor's notifications, newest first.

        Raises:
            ValidationError: If pagination bounds are invalid.
            NotFoundError: If the conductor is not the owner's.
            ForbiddenError: If the conductor is inactive.
        """
        if limit < 1 or limit > MAX_PAGE_SIZE or offset < 0:
            raise ValidationError(
                "Parámetros de paginación inválidos",
                details={"limit": limit, "offset": offset},
            )
        conductor = await self._conductors.get(owner_id, conductor_id)
        if not conductor.active:
            raise ForbiddenError("Conductor inactivo")

        base = select(Notification).where(Notification.conductor_id == conductor_id)
        if unread_only:
            base = base.where(Notification.is_read.is_(False))
        page_query = base.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
        notifications = list((await self._execute(page_query)).scalars().all())

        count_query = select(func.count()).select_from(base.subquery())
        total = (await self._execute(count_query)).scalar_one()

        unread_query = select(func.count()).where(
            Notification.conductor_id == conductor_id,
            Notification.is_read.is_(False),
        )
        unread = (await self._execute(unread_query)).scalar_one()

        now = now or datetime.now(UTC)
        return InboxPage(
            conductor=conductor,
            items=[InboxItem(n, time_ago(n.created_at, now)) for n in notifications],
            total=total,
            unread=unread,
            limit=limit,
            offset=offset,
            unread_only=unread_only,
        )

    async def mark_read(
        self, notification_id: UUID, conductor_id: UUID | None = None
    ) -> Notification:
        """Mark one notification read.

        Raises:
            NotFoundError: If absent or addressed to another conductor.
        """
        query = select(Notification).where(Notification.notification_id == notification_id)
        if conductor_id is not None:
            query = query.where(Notification.conductor_id == conductor_id)
        notification = (await self._execute(query)).scalar_one_or_none()
        if notification is None:
            raise NotFoundError(
                "Notificación no encontrada o no pertenece al conductor",
                details={"notification_id": str(notification_id)},
            )

        notification.is_read = True
        notification.updated_at = datetime.now(UTC)
        await self._commit()
        return notification

    async def mark_many_read(
        self,
        conductor_id: UUID,
        *,
        notification_ids: Sequence[UUID] | None = None,
        mark_all: bool = False,
    ) -> int:
        """Mark a conductor's unread notifications read.

        Returns:
            Number of notifications updated.

        Raises:
            ValidationError: If neither ids nor ``mark_all`` are given.
        """
        statement = (
            update(Notification)
            .where(
                Notification.conductor_id == conductor_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, updated_at=datetime.now(UTC))
            .returning(Notification.notification_id)
        )
        if not mark_all:
            if not notification_ids:
                raise ValidationError("Debe especificar notification_ids o mark_all=true")
            statement = statement.where(Notification.notification_id.in_(list(notification_ids)))

        updated = list((await self._execute(statement)).scalars().all())
        await self._commit()

        logger.info(
            "Notifications marked read",
            extra={"conductor_id": str(conductor_id), "updated": len(updated)},
        )
        return len(updated)

    # ------------------------------------------------------------------
    # Delayed packages
    # ------------------------------------------------------------------

    async def delayed_packages(
        self,
        owner_id: UUID,
        *,
        now: datetime | None = None,
        grace_days: int = DEFAULT_GRACE_DAYS,
        conductor_id: UUID | None = None,
    ) -> DelayedPackagesView:
        """Pending packages more than ``grace_days`` overdue, most late first."""
        now = now or datetime.now(UTC)
        cutoff = now.date() - timedelta(days=grace_days)
        packages = await self._packages.list_pending_due_before(
            owner_id, cutoff, conductor_id=conductor_id
        )

        delayed = [(package, days_late(package.due_date, now)) for package in packages]
        delayed.sort(key=lambda item: item[1], reverse=True)

        stats: dict[UUID, DelayedConductorStats] = {}
        for package, late in delayed:
            entry = stats.get(package.conductor_id)
            if entry is None:
                entry = stats[package.conductor_id] = DelayedConductorStats(package.conductor)
            entry.total_delayed += 1
            entry.total_days_late += late
            entry.package_ids.append(package.package_id)
            if package.shipment_type == ShipmentType.DROPI and package.value:
                entry.value_at_risk += package.value

        return DelayedPackagesView(
            cutoff=cutoff,
            packages=delayed,
            conductor_stats=sorted(
                stats.values(), key=lambda s: s.total_delayed, reverse=True
            ),
        )

