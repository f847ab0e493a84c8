"""Package model.

Tracking numbers are unique across the whole table, not per owner.
"""

from __future__ import annotations

# Required at runtime for SQLAlchemy type resolution
import uuid  # noqa: TC003
from datetime import date  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    SmallInteger,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from barulogix.db.models.base import (
    Base,
    PackageStatus,
    ShipmentType,
    TimestampTZ,
    UUIDPrimaryKey,
)

if TYPE_CHECKING:
    from barulogix.db.models.conductors import Conductor

MAX_TRACKING_LENGTH = 100


class Package(Base):
    """Parcel assigned to a conductor for delivery."""

    __tablename__ = "packages"

    package_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    tracking: Mapped[str] = mapped_column(String(MAX_TRACKING_LENGTH), nullable=False, unique=True)

    conductor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conductors.conductor_id", ondelete="RESTRICT"),
        nullable=False,
    )

    shipment_type: Mapped[ShipmentType] = mapped_column(
        Enum(
            ShipmentType,
            name="shipment_type",
            create_constraint=True,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )

    # 0 pending, 1 delivered, 2 returned
    status: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        server_default=text(str(int(PackageStatus.PENDING))),
        default=int(PackageStatus.PENDING),
    )

    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    client_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Amount to collect, Dropi only
    value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    conductor: Mapped[Conductor] = relationship("Conductor", back_populates="packages")

    __table_args__ = (
        CheckConstraint("status IN (0, 1, 2)", name="status_valid"),
        CheckConstraint(
            "shipment_type = 'Dropi' OR value IS NULL",
            name="value_only_for_dropi",
        ),
        Index("ix_packages_conductor_id", "conductor_id"),
        Index("ix_packages_conductor_status", "conductor_id", "status"),
        Index("ix_packages_due_date", "due_date"),
    )
