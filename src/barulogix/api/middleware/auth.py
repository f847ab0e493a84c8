"""Bearer token authentication.

IdentityMiddleware verifies the access token issued by the identity provider
and stores the caller on ``request.state.user``. It never rejects a request
itself; route dependencies decide whether an identity is required.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.middleware.base import BaseHTTPMiddleware

from barulogix.services.errors import AuthError, ForbiddenError
from barulogix.services.identity import decode_access_token

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from starlette.responses import Response

    from barulogix.core.config import AuthSettings

logger = logging.getLogger(__name__)

# Bearer token security scheme for OpenAPI docs
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """Caller identity for the current request.

    Attributes:
        owner_id: Identity provider subject; owns conductors and packages.
        email: Account email, when present in the token.
        is_admin: Whether the caller may use the admin routes.
    """

    owner_id: UUID
    email: str | None = None
    is_admin: bool = False


class IdentityMiddleware(BaseHTTPMiddleware):
    """Middleware that validates Bearer tokens and sets the request user."""

    def __init__(self, app: Any, *, auth_settings: AuthSettings) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application.
            auth_settings: Token validation settings.
        """
        super().__init__(app)
        self._auth_settings = auth_settings

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request.state.user = None
        request.state.auth_error = None

        token = self._extract_token(request)
        if token:
            try:
                verified = decode_access_token(token, self._auth_settings)
            except AuthError as exc:
                request.state.auth_error = exc
            else:
                request.state.user = AuthenticatedUser(
                    owner_id=verified.user_id,
                    email=verified.email,
                    is_admin=verified.is_admin,
                )

        return await call_next(request)

    @staticmethod
    def _extract_token(request: Request) -> str | None:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None
        return None


async def require_authenticated_user(
    request: Request,
    _credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(bearer_scheme),
    ] = None,
) -> AuthenticatedUser:
    """Dependency that requires an authenticated user.

    The _credentials parameter is used for OpenAPI documentation; the
    actual verification is done by IdentityMiddleware.

    Raises:
        AuthError: If no valid token was supplied.
    """
    user = getattr(request.state, "user", None)
    if user is None:
        error = getattr(request.state, "auth_error", None)
        if error is not None:
            raise error
        raise AuthError("No autorizado", details="Debe estar logueado")
    return user


async def require_admin_user(
    user: Annotated[AuthenticatedUser, Depends(require_authenticated_user)],
) -> AuthenticatedUser:
    """Dependency that requires an admin user.

    Raises:
        ForbiddenError: If the user is not an admin.
    """
    if not user.is_admin:
        logger.warning("Admin access denied", extra={"user_id": str(user.owner_id)})
        raise ForbiddenError("Acceso denegado - Solo administradores")
    return user
