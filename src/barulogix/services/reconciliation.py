"""Delivery reconciliation.

Applies a bulk deliver/return operation to a list of tracking numbers typed
or scanned by warehouse staff. Trackings are processed one by one in input
order and each successful transition is committed on its own, so a failing
tracking never undoes the others.

Per tracking:
1. trim; blank entries are reported and skipped
2. resolve by exact tracking inside the owner's conductors
3. reject when the package is already in the target status
4. set the status (and the client delivery date when delivering)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from barulogix.db.models.base import PackageStatus
from barulogix.services.conductors import ConductorRepository
from barulogix.services.errors import BaruLogixError, ValidationError
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.packages import PackageRepository
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ReconciliationOperation(str, Enum):
    """Bulk transition requested by the warehouse."""

    DELIVER = "deliver"
    RETURN = "return"

    @property
    def target_status(self) -> PackageStatus:
        if self is ReconciliationOperation.DELIVER:
            return PackageStatus.DELIVERED
        return PackageStatus.RETURNED

    @property
    def past_participle(self) -> str:
        return "entregado" if self is ReconciliationOperation.DELIVER else "devuelto"


@dataclass(frozen=True, slots=True)
class ReconciledPackage:
    """A package whose status was changed."""

    package_id: UUID
    tracking: str
    shipment_type: str
    conductor_name: str
    conductor_zone: str
    previous_status: int
    new_status: int
    previous_client_delivery_date: date | None = None


@dataclass(frozen=True, slots=True)
class ReconciliationReport:
    """Per-item outcome of a reconciliation batch."""

    operation: ReconciliationOperation
    total_count: int
    updated: list[ReconciledPackage] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.updated)

    @property
    def message(self) -> str:
        verb = "entregados" if self.operation is ReconciliationOperation.DELIVER else "devueltos"
        return f"{self.processed_count} paquetes marcados como {verb}"


class DeliveryReconciliationService(StoreService):
    """Bulk Pending -> Delivered / Returned transitions by tracking."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self._packages = PackageRepository(session)
        self._conductors = ConductorRepository(session)
        self._history = OperationHistoryService(session)

    async def reconcile(
        self,
        owner_id: UUID,
        trackings: Sequence[str],
        operation: ReconciliationOperation | str,
        *,
        client_delivery_date: date | None = None,
    ) -> ReconciliationReport:
        """Apply ``operation`` to every tracking and report each outcome.

        Args:
            owner_id: Warehouse owner; only its conductors' packages are touched.
            trackings: Raw tracking strings, possibly blank or repeated.
            operation: deliver or return.
            client_delivery_date: Recorded on delivered packages when given.

        Returns:
            Report with updated entries and error messages in input order.

        Raises:
            ValidationError: If the tracking list is empty or the operation unknown.
        """
        try:
            operation = ReconciliationOperation(operation)
        except ValueError as e:
            raise ValidationError(
                "Operación inválida", details={"operation": str(operation)}
            ) from e
        if not trackings:
            raise ValidationError("Debe proporcionar al menos un tracking")

        target = operation.target_status
        conductor_ids = await self._conductors.owned_ids(owner_id)
        report = ReconciliationReport(operation=operation, total_count=len(trackings))

        for raw in trackings:
            tracking = (raw or "").strip()
            if not tracking:
                report.errors.append("Tracking vacío ignorado")
                continue

            try:
                entry = await self._apply(
                    tracking, conductor_ids, target, operation, client_delivery_date
                )
            except BaruLogixError as e:
                logger.warning(
                    "Reconciliation failed for tracking",
                    extra={"tracking": tracking, "error": e.message},
                )
                report.errors.append(f"{tracking}: {e.message}")
                continue

            if isinstance(entry, str):
                report.errors.append(entry)
            else:
                report.updated.append(entry)

        if report.updated:
            # Status changes are already committed; a lost history entry must
            # not turn the batch into a failure
            self._record_history(owner_id, report, client_delivery_date)
            try:
                await self._commit()
            except BaruLogixError as e:
                logger.error(
                    "Reconciliation history not saved",
                    extra={"owner_id": str(owner_id), "error": e.message},
                )

        logger.info(
            "Reconciliation finished",
            extra={
                "owner_id": str(owner_id),
                "operation": operation.value,
                "processed": report.processed_count,
                "errors": len(report.errors),
            },
        )
        return report

    async def _apply(
        self,
        tracking: str,
        conductor_ids: list[UUID],
        target: PackageStatus,
        operation: ReconciliationOperation,
        client_delivery_date: date | None,
    ) -> ReconciledPackage | str:
        package = await self._packages.find_by_tracking(tracking, conductor_ids)
        if package is None:
            return f"{tracking}: No encontrado en su bodega"

        previous = PackageStatus(package.status)
        if previous == target:
            return f"{tracking}: Ya está marcado como {operation.past_participle}"

        previous_delivery = package.client_delivery_date

        package.status = int(target)
        if target == PackageStatus.DELIVERED and client_delivery_date is not None:
            package.client_delivery_date = client_delivery_date
        package.updated_at = datetime.now(UTC)
        await self._commit()

        return ReconciledPackage(
            package_id=package.package_id,
            tracking=package.tracking,
            shipment_type=package.shipment_type.value,
            conductor_name=package.conductor.name,
            conductor_zone=package.conductor.zone,
            previous_status=int(previous),
            new_status=int(target),
            previous_client_delivery_date=previous_delivery,
        )

    def _record_history(
        self,
        owner_id: UUID,
        report: ReconciliationReport,
        client_delivery_date: date | None,
    ) -> None:
        details: dict[str, Any] = {
            "operation": report.operation.value,
            "trackings": [item.tracking for item in report.updated],
            "errors": len(report.errors),
            # Previous values let the batch be reverted
            "packages": [
                {
                    "package_id": str(item.package_id),
                    "tracking": item.tracking,
                    "previous_status": item.previous_status,
                    "previous_client_delivery_date": (
                        item.previous_client_delivery_date.isoformat()
                        if item.previous_client_delivery_date
                        else None
                    ),
                }
                for item in report.updated
            ],
        }
        if client_delivery_date is not None:
            details["client_delivery_date"] = client_delivery_date.isoformat()
        self._history.record(
            owner_id,
            OperationType.DELIVERY_RECONCILIATION,
            report.message,
            details=details,
            affected_records=report.processed_count,
            can_undo=True,
        )
