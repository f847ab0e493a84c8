"""Driver portal API router.

Account routes (register, email verification, login, password reset) are
public. Every other route needs a driver session token from
``/conductor/auth/login`` and only shows the driver's own data.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from barulogix.api.dependencies import (
    AppSettings,
    CurrentConductor,
    DateFilterParams,
    DbSession,
    Mailer,
    today,
)
from barulogix.api.schemas.common import ConductorSummary
from barulogix.api.schemas.conductor_portal import (
    ConductorAccountSummary,
    ConductorLoginRequest,
    ConductorLoginResponse,
    ConductorMarkReadRequest,
    ConductorPackagesResponse,
    ConductorProfileResponse,
    ConductorRegisterRequest,
    ConductorStatsResponse,
    ForgotPasswordRequest,
    MessageResponse,
    PagePagination,
    RegisterResponse,
    ResetPasswordRequest,
)
from barulogix.api.schemas.notifications import (
    MarkReadResponse,
    NotificationPageResponse,
    NotificationResponse,
    PaginationInfo,
)
from barulogix.api.schemas.packages import PackageResponse
from barulogix.services.conductor_accounts import (
    PASSWORD_RESET_SENT,
    ConductorAccountService,
)
from barulogix.services.conductor_portal import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ConductorPortalService,
    PackageCategory,
)
from barulogix.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/conductor",
    tags=["conductor-portal"],
    responses={
        401: {"description": "Driver authentication required"},
        403: {"description": "Conductor is inactive"},
    },
)


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check for driver portal namespace."""
    return {"status": "healthy", "namespace": "conductor"}


# -----------------------------------------------------------------------------
# Accounts
# -----------------------------------------------------------------------------


@router.post(
    "/auth/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a driver account",
    description=(
        "Creates an unverified account for an existing conductor and emails a "
        "verification link. Answers 200 when the account exists but the email failed."
    ),
)
async def register(
    request: ConductorRegisterRequest,
    response: Response,
    db: DbSession,
    settings: AppSettings,
    mailer: Mailer,
) -> RegisterResponse:
    result = await ConductorAccountService(db, settings.portal, mailer).register(
        request.conductor_id, request.email, request.password
    )
    if result.email_sent:
        message = "Conductor registrado exitosamente. Por favor, verifica tu email."
    else:
        response.status_code = status.HTTP_200_OK
        message = "Conductor registrado, pero falló el envío del correo de verificación."
    return RegisterResponse(
        message=message,
        conductor=ConductorAccountSummary(
            id=result.account.conductor_id, email=result.account.email
        ),
        email_sent=result.email_sent,
    )


@router.get(
    "/auth/verify-email",
    response_model=MessageResponse,
    summary="Confirm a driver email",
)
async def verify_email(
    db: DbSession,
    settings: AppSettings,
    mailer: Mailer,
    token: str | None = None,
) -> MessageResponse:
    await ConductorAccountService(db, settings.portal, mailer).verify_email(token)
    return MessageResponse(message="Email verificado exitosamente. Ya puedes iniciar sesión.")


@router.post(
    "/auth/login",
    response_model=ConductorLoginResponse,
    summary="Driver login",
    description="Exchanges email and password for a driver session token.",
)
async def login(
    request: ConductorLoginRequest,
    db: DbSession,
    settings: AppSettings,
    mailer: Mailer,
) -> ConductorLoginResponse:
    result = await ConductorAccountService(db, settings.portal, mailer).login(
        request.email, request.password
    )
    return ConductorLoginResponse(
        message="Inicio de sesión exitoso",
        token=result.token,
        conductor=ConductorAccountSummary(
            id=result.account.conductor_id, email=result.account.email
        ),
    )


@router.post(
    "/auth/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset link",
    description="Answers the same way whether or not the email is registered.",
)
async def forgot_password(
    request: ForgotPasswordRequest,
    db: DbSession,
    settings: AppSettings,
    mailer: Mailer,
) -> MessageResponse:
    await ConductorAccountService(db, settings.portal, mailer).request_password_reset(
        request.email
    )
    return MessageResponse(message=PASSWORD_RESET_SENT)


@router.post(
    "/auth/reset-password",
    response_model=MessageResponse,
    summary="Choose a new password",
)
async def reset_password(
    request: ResetPasswordRequest,
    db: DbSession,
    settings: AppSettings,
    mailer: Mailer,
) -> MessageResponse:
    await ConductorAccountService(db, settings.portal, mailer).reset_password(
        request.token, request.password
    )
    return MessageResponse(message="Contraseña restablecida exitosamente")


@router.get(
    "/profile",
    response_model=ConductorProfileResponse,
    summary="Driver profile",
)
async def profile(account: CurrentConductor) -> ConductorProfileResponse:
    return ConductorProfileResponse.from_account(account)


# -----------------------------------------------------------------------------
# Packages
# -----------------------------------------------------------------------------


@router.get(
    "/packages",
    response_model=ConductorPackagesResponse,
    summary="The driver's packages",
    description="One category (type x delivered/pending) per call, paginated by page number.",
)
async def list_packages(
    account: CurrentConductor,
    db: DbSession,
    date_filter: DateFilterParams,
    package_type: Annotated[str | None, Query(alias="type")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
) -> ConductorPackagesResponse:
    result = await ConductorPortalService(db).packages(
        account.conductor,
        package_type,
        date_filter.resolve(today()),
        page=page,
        limit=limit,
    )
    return ConductorPackagesResponse(
        type=PackageCategory(package_type).value,
        packages=[PackageResponse.from_model(p) for p in result.items],
        pagination=PagePagination(
            current_page=result.page,
            total_pages=result.total_pages,
            total_records=result.total,
            limit=result.limit,
            has_next=result.has_next,
            has_prev=result.has_prev,
        ),
    )


@router.get(
    "/stats",
    response_model=ConductorStatsResponse,
    summary="The driver's package counts",
)
async def stats(
    account: CurrentConductor,
    db: DbSession,
    date_filter: DateFilterParams,
) -> ConductorStatsResponse:
    counts = await ConductorPortalService(db).stats(
        account.conductor, date_filter.resolve(today())
    )
    return ConductorStatsResponse(**counts)


# -----------------------------------------------------------------------------
# Inbox
# -----------------------------------------------------------------------------


@router.get(
    "/notifications",
    response_model=NotificationPageResponse,
    summary="The driver's notifications",
    description="Newest first, with total and unread counts.",
)
async def list_notifications(
    account: CurrentConductor,
    db: DbSession,
    settings: AppSettings,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    unread_only: bool = False,
) -> NotificationPageResponse:
    conductor = account.conductor
    page = await NotificationDispatcher(db).list_for_conductor(
        conductor.owner_id,
        conductor.conductor_id,
        limit=limit or settings.operations.notification_page_size,
        offset=offset,
        unread_only=unread_only,
    )
    return NotificationPageResponse(
        conductor=ConductorSummary.from_model(page.conductor),
        notifications=[
            NotificationResponse.from_model(item.notification, item.time_ago)
            for item in page.items
        ],
        total=page.total,
        unread_count=page.unread,
        pagination=PaginationInfo(limit=page.limit, offset=page.offset, has_more=page.has_more),
    )


@router.api_route(
    "/notifications/mark-read",
    methods=["PUT", "POST"],
    response_model=MarkReadResponse,
    summary="Mark the driver's notifications read",
)
async def mark_read(
    request: ConductorMarkReadRequest,
    account: CurrentConductor,
    db: DbSession,
) -> MarkReadResponse:
    dispatcher = NotificationDispatcher(db)
    if request.notification_id is not None:
        await dispatcher.mark_read(request.notification_id, account.conductor_id)
        return MarkReadResponse(message="Notificación marcada como leída", updated_count=1)

    updated = await dispatcher.mark_many_read(
        account.conductor_id,
        notification_ids=request.notification_ids,
        mark_all=request.mark_all,
    )
    return MarkReadResponse(
        message=f"{updated} notificaciones marcadas como leídas",
        updated_count=updated,
    )
