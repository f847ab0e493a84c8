"""BaruLogix API middleware components.

This module provides middleware for:
- Request ID tracking and log correlation
- Consistent error response formatting
- Bearer token authentication
"""

from barulogix.api.middleware.auth import (
    AuthenticatedUser,
    IdentityMiddleware,
    require_admin_user,
    require_authenticated_user,
)
from barulogix.api.middleware.errors import (
    ErrorHandlerMiddleware,
    build_error_response,
    install_exception_handlers,
)
from barulogix.api.middleware.request_id import (
    RequestIDLogFilter,
    RequestIDMiddleware,
    get_request_id,
)

__all__ = [
    "AuthenticatedUser",
    "ErrorHandlerMiddleware",
    "IdentityMiddleware",
    "RequestIDLogFilter",
    "RequestIDMiddleware",
    "build_error_response",
    "get_request_id",
    "install_exception_handlers",
    "require_admin_user",
    "require_authenticated_user",
]
