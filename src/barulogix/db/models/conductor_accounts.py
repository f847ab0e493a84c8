"""Driver portal credentials.

A conductor may register one account to see its own packages, statistics
and notifications. Accounts are separate from warehouse owners, whose
identities live in the hosted identity provider.
"""

from __future__ import annotations

# Required at runtime for SQLAlchemy type resolution
import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from barulogix.db.models.base import Base, TimestampTZ, UUIDPrimaryKey

if TYPE_CHECKING:
    from barulogix.db.models.conductors import Conductor


class ConductorAccount(Base):
    """Email and password login for one conductor."""

    __tablename__ = "conductor_accounts"

    account_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    conductor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conductors.conductor_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    # Stored lower-cased
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )

    verification_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verification_token_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reset_token_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    conductor: Mapped[Conductor] = relationship("Conductor", lazy="joined")

    __table_args__ = (
        Index("ix_conductor_accounts_verification_token", "verification_token"),
        Index("ix_conductor_accounts_reset_token", "reset_token"),
    )
