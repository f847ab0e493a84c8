"""BaruLogix domain services.

Repositories and services operating on an AsyncSession:
- packages: Package CRUD, search, bulk lookup and bulk import
- conductors: Driver management
- reconciliation: Bulk deliver/return by tracking
- notifications: Delay alerts, custom messages and driver inbox
- reports: Reports and JSON/CSV exports
- history: Operation history
- identity: Access token verification and the identity provider client
"""

from barulogix.services.conductors import ConductorRepository
from barulogix.services.errors import (
    AuthError,
    BaruLogixError,
    ConflictError,
    EmailNotVerifiedError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.notifications import NotificationDispatcher
from barulogix.services.packages import PackageFilters, PackageRepository
from barulogix.services.reconciliation import (
    DeliveryReconciliationService,
    ReconciliationOperation,
)
from barulogix.services.reports import ExportFormat, ReportBuilder, ReportScope

__all__ = [
    "AuthError",
    "BaruLogixError",
    "ConductorRepository",
    "ConflictError",
    "DeliveryReconciliationService",
    "EmailNotVerifiedError",
    "ExportFormat",
    "ForbiddenError",
    "InternalError",
    "NotFoundError",
    "NotificationDispatcher",
    "OperationHistoryService",
    "OperationType",
    "PackageFilters",
    "PackageRepository",
    "ReconciliationOperation",
    "ReportBuilder",
    "ReportScope",
    "ValidationError",
]
