"""Shared FastAPI dependencies.

Database sessions, settings, the mailer, the authenticated caller (warehouse
user or driver) and date-window query parameters used by several routers.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, date, datetime
from typing import Annotated

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from barulogix.api.middleware.auth import (
    AuthenticatedUser,
    bearer_scheme,
    require_admin_user,
    require_authenticated_user,
)
from barulogix.api.schemas.common import DateFilter
from barulogix.core.config import Settings
from barulogix.db.models.conductor_accounts import ConductorAccount
from barulogix.services.conductor_accounts import (
    ConductorAccountService,
    decode_conductor_token,
)
from barulogix.services.date_ranges import DateFilterType
from barulogix.services.errors import AuthError, InternalError
from barulogix.services.identity import IdentityProviderClient
from barulogix.services.mailer import ConductorMailer

# -----------------------------------------------------------------------------
# Database session dependency
# -----------------------------------------------------------------------------


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Get database session.

    Uses the application's async session factory.
    """
    from barulogix.db import get_async_session

    async with get_async_session() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


# -----------------------------------------------------------------------------
# Settings and external clients
# -----------------------------------------------------------------------------


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, or the environment's."""
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        from barulogix.core.settings import get_settings_safe

        settings = get_settings_safe()
    if settings is None:
        raise InternalError("Configuración no disponible")
    return settings


AppSettings = Annotated[Settings, Depends(get_app_settings)]


async def get_identity_client(settings: AppSettings) -> AsyncIterator[IdentityProviderClient]:
    async with IdentityProviderClient(settings.identity) as client:
        yield client


IdentityClient = Annotated[IdentityProviderClient, Depends(get_identity_client)]


def get_mailer(settings: AppSettings) -> ConductorMailer:
    return ConductorMailer(settings.smtp, base_url=settings.portal.public_url)


Mailer = Annotated[ConductorMailer, Depends(get_mailer)]


# -----------------------------------------------------------------------------
# Caller identity
# -----------------------------------------------------------------------------

CurrentUser = Annotated[AuthenticatedUser, Depends(require_authenticated_user)]
AdminUser = Annotated[AuthenticatedUser, Depends(require_admin_user)]


async def require_conductor_account(
    db: DbSession,
    settings: AppSettings,
    mailer: Mailer,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> ConductorAccount:
    """Account of the driver holding a valid driver session token.

    Raises:
        AuthError: If the token is missing or invalid.
        ForbiddenError: If the conductor was deactivated.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Token de autenticación requerido")
    identity = decode_conductor_token(credentials.credentials, settings.portal)
    return await ConductorAccountService(db, settings.portal, mailer).get_for_conductor(
        identity.conductor_id
    )


CurrentConductor = Annotated[ConductorAccount, Depends(require_conductor_account)]


# -----------------------------------------------------------------------------
# Date window
# -----------------------------------------------------------------------------


def today() -> date:
    return datetime.now(UTC).date()


def date_filter_params(
    date_filter: Annotated[
        DateFilterType, Query(description="all, lastDays, month or range")
    ] = DateFilterType.ALL,
    last_days: Annotated[int | None, Query(alias="lastDays")] = None,
    month: int | None = None,
    year: int | None = None,
    date_from: Annotated[date | None, Query(alias="from")] = None,
    date_to: Annotated[date | None, Query(alias="to")] = None,
) -> DateFilter:
    """Due-date window from query parameters."""
    return DateFilter(
        filter_type=date_filter,
        last_days=last_days,
        month=month,
        year=year,
        start=date_from,
        end=date_to,
    )


DateFilterParams = Annotated[DateFilter, Depends(date_filter_params)]
