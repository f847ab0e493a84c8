"""Administrative operation history (append-only)."""

from __future__ import annotations

# Required at runtime for SQLAlchemy type resolution
import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from barulogix.db.models.base import Base, TimestampTZ, UUIDPrimaryKey


class OperationHistory(Base):
    """One administrative or bulk operation performed by a user."""

    __tablename__ = "admin_operations_history"

    history_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    operation_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    affected_records: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0"), default=0
    )
    can_undo: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    # Set when the operation was reverted; the entry itself is never removed
    undone_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_admin_operations_history_user_created", "user_id", "created_at"),)
