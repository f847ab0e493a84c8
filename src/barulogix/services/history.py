"""Administrative operation history.

Append-only log of bulk and administrative actions (imports, reconciliations,
alert batches, exports, user bans, admin operations and their undos).
Entries are added to the caller's session and committed together with the
operation they describe.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from barulogix.db.models.history import OperationHistory
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from uuid import UUID

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class OperationType:
    """Known operation type labels."""

    BULK_IMPORT = "bulk_import"
    DELIVERY_RECONCILIATION = "delivery_reconciliation"
    DELAY_ALERTS = "delay_alerts"
    CUSTOM_MESSAGE = "custom_message"
    EXPORT = "export"
    USER_BAN = "user_ban"
    USER_UNBAN = "user_unban"
    USER_DELETE = "user_delete"
    CONDUCTOR_PURGE = "conductor_purge"
    CHANGE_STATES = "change_states"
    TRANSFER_PACKAGES = "transfer_packages"
    UPDATE_DATES = "update_dates"
    CHANGE_TYPES = "change_types"
    TOGGLE_CONDUCTORS = "toggle_conductors"
    UNDO_PREFIX = "undo_"


class OperationHistoryService(StoreService):
    """Records and lists operation history entries."""

    def record(
        self,
        user_id: UUID,
        operation_type: str,
        description: str,
        *,
        details: dict[str, Any] | None = None,
        affected_records: int = 0,
        can_undo: bool = False,
    ) -> OperationHistory:
        """Stage a history entry in the current session.

        The entry is persisted by the caller's next commit.

        Args:
            user_id: Identity that performed the operation.
            operation_type: One of the OperationType labels.
            description: Short Spanish summary.
            details: Structured payload for later inspection.
            affected_records: Number of rows touched.
            can_undo: Whether the operation can be reverted.

        Returns:
            The pending OperationHistory row.
        """
        entry = OperationHistory(
            user_id=user_id,
            operation_type=operation_type,
            description=description,
            details=details,
            affected_records=affected_records,
            can_undo=can_undo,
        )
        self._session.add(entry)

        logger.info(
            "Operation recorded",
            extra={
                "user_id": str(user_id),
                "operation_type": operation_type,
                "affected_records": affected_records,
            },
        )
        return entry

    async def log(
        self,
        user_id: UUID,
        operation_type: str,
        description: str,
        *,
        details: dict[str, Any] | None = None,
        affected_records: int = 0,
    ) -> OperationHistory:
        """Record an entry and commit it on its own."""
        entry = self.record(
            user_id,
            operation_type,
            description,
            details=details,
            affected_records=affected_records,
        )
        await self._commit()
        return entry

    async def list_recent(
        self, user_id: UUID, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[OperationHistory]:
        """Latest entries for a user, newest first."""
        query = (
            select(OperationHistory)
            .where(OperationHistory.user_id == user_id)
            .order_by(OperationHistory.created_at.desc())
            .limit(limit)
        )
        result = await self._execute(query)
        return list(result.scalars().all())

    async def latest_undoable(self, user_id: UUID) -> OperationHistory | None:
        """Newest entry of the user that can still be reverted."""
        query = (
            select(OperationHistory)
            .where(
                OperationHistory.user_id == user_id,
                OperationHistory.can_undo.is_(True),
                OperationHistory.undone_at.is_(None),
            )
            .order_by(OperationHistory.created_at.desc())
            .limit(1)
        )
        result = await self._execute(query)
        return result.scalar_one_or_none()
