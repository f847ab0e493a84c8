"""Driver (conductor) model.

A conductor belongs to exactly one warehouse owner; packages and
notifications reach their owner through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from barulogix.db.models.base import Base, OwnerId, TimestampTZ, UUIDPrimaryKey

if TYPE_CHECKING:
    from barulogix.db.models.packages import Package


class Conductor(Base):
    """Delivery driver registered by a warehouse owner."""

    __tablename__ = "conductors"

    conductor_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    owner_id: Mapped[OwnerId]

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    zone: Mapped[str] = mapped_column(String(150), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Deactivated drivers keep their history but stop receiving broadcasts
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )

    packages: Mapped[list[Package]] = relationship(
        "Package",
        back_populates="conductor",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_conductors_owner_id_name"),
        Index("ix_conductors_owner_id", "owner_id"),
        Index("ix_conductors_owner_zone", "owner_id", "zone"),
    )
