"""Base model definitions and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Reusable column type annotations
- Enum types shared by several models
"""

import enum
import uuid
from datetime import datetime
from typing import Annotated

from sqlalchemy import DateTime, MetaData, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, mapped_column, registry

# Naming convention for constraints ensures consistent migration generation.
# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

type_registry = registry()

# UUID primary key with server-side default generation
UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
]

# Owner identity (subject of the identity provider token)
OwnerId = Annotated[uuid.UUID, mapped_column(UUID(as_uuid=True), nullable=False)]

# Timestamp with timezone, defaults to now
TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), server_default=text("now()")),
]


class Base(DeclarativeBase):
    """Declarative base for all BaruLogix models.

    Server-generated ids and timestamps are fetched with RETURNING on insert
    so async callers never trigger a lazy refresh.
    """

    metadata = metadata
    registry = type_registry

    __mapper_args__ = {"eager_defaults": True}  # noqa: RUF012


# =============================================================================
# Common Enums
# =============================================================================


class ShipmentType(enum.Enum):
    """Package shipment type.

    Values:
        SHEIN_TEMU: Prepaid marketplace parcels, never carry a value
        DROPI: Cash-on-delivery parcels, value is the amount to collect
    """

    SHEIN_TEMU = "Shein/Temu"
    DROPI = "Dropi"


class PackageStatus(enum.IntEnum):
    """Package delivery status, stored as a small integer.

    Values:
        PENDING: Not delivered yet (initial state)
        DELIVERED: Handed to the end customer
        RETURNED: Sent back to the warehouse
    """

    PENDING = 0
    DELIVERED = 1
    RETURNED = 2

    @property
    def label(self) -> str:
        """Spanish label shown to warehouse staff."""
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    PackageStatus.PENDING: "No entregado",
    PackageStatus.DELIVERED: "Entregado",
    PackageStatus.RETURNED: "Devuelto",
}


class NotificationKind(enum.Enum):
    """Kind of driver notification.

    Values:
        DELAY_ALERT: Generated for an overdue pending package
        CUSTOM_MESSAGE: Free text broadcast by the warehouse owner
    """

    DELAY_ALERT = "delay_alert"
    CUSTOM_MESSAGE = "custom_message"
