"""BaruLogix API routers.

Each router handles one API namespace:
- auth: Password login through the identity provider
- packages: Package CRUD, search, stats, bulk import, reconciliation
- conductors: Driver management
- notifications: Delay alerts, messages and the driver inbox
- reports: Reports and exports
- admin: User management, operation history, bulk operations and undo
  (admin auth)
- conductor_portal: Driver accounts and the driver's own packages, stats
  and inbox (driver auth)
"""

from barulogix.api.routers.admin import router as admin_router
from barulogix.api.routers.auth import router as auth_router
from barulogix.api.routers.conductor_portal import router as conductor_portal_router
from barulogix.api.routers.conductors import router as conductors_router
from barulogix.api.routers.notifications import router as notifications_router
from barulogix.api.routers.packages import router as packages_router
from barulogix.api.routers.reports import router as reports_router

__all__ = [
    "admin_router",
    "auth_router",
    "conductor_portal_router",
    "conductors_router",
    "notifications_router",
    "packages_router",
    "reports_router",
]
