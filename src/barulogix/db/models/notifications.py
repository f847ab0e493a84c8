"""In-app notifications addressed to conductors."""

from __future__ import annotations

# Required at runtime for SQLAlchemy type resolution
import uuid  # noqa: TC003

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from barulogix.db.models.base import (
    Base,
    NotificationKind,
    OwnerId,
    TimestampTZ,
    UUIDPrimaryKey,
)


class Notification(Base):
    """Message shown to a conductor in the driver app.

    Rows are only mutated by mark-read operations.
    """

    __tablename__ = "notifications"

    notification_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    conductor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conductors.conductor_id", ondelete="CASCADE"),
        nullable=False,
    )
    owner_id: Mapped[OwnerId]

    kind: Mapped[NotificationKind] = mapped_column(
        Enum(NotificationKind, name="notification_kind", create_constraint=True),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    package_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("packages.package_id", ondelete="SET NULL"),
        nullable=True,
    )

    is_read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )

    __table_args__ = (
        Index("ix_notifications_conductor_created", "conductor_id", "created_at"),
        Index("ix_notifications_conductor_unread", "conductor_id", "is_read"),
    )
