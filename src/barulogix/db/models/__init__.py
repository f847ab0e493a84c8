"""SQLAlchemy ORM models for BaruLogix.

- base: Common metadata, column types and enums
- conductors: Drivers owned by a warehouse user
- conductor_accounts: Driver portal logins
- packages: Parcels assigned to drivers
- notifications: Driver notifications
- history: Administrative operation history
"""

from barulogix.db.models.base import (
    Base,
    NotificationKind,
    PackageStatus,
    ShipmentType,
    metadata,
)
from barulogix.db.models.conductor_accounts import ConductorAccount
from barulogix.db.models.conductors import Conductor
from barulogix.db.models.history import OperationHistory
from barulogix.db.models.notifications import Notification
from barulogix.db.models.packages import Package

__all__ = [
    "Base",
    "Conductor",
    "ConductorAccount",
    "Notification",
    "NotificationKind",
    "OperationHistory",
    "Package",
    "PackageStatus",
    "ShipmentType",
    "metadata",
]
