"""Notifications API router.

Delay alerts and free-text messages sent by the owner to conductors, the
conductor inbox and read-state updates.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from barulogix.api.dependencies import AppSettings, CurrentUser, DbSession
from barulogix.api.schemas.common import ConductorSummary
from barulogix.api.schemas.notifications import (
    ConductorAlertStats,
    DelayedConductorResponse,
    DelayedPackagesResponse,
    MarkReadRequest,
    MarkReadResponse,
    NotificationPageResponse,
    NotificationResponse,
    PaginationInfo,
    SendAlertRequest,
    SendAlertResponse,
    SendBulkAlertsRequest,
    SendBulkAlertsResponse,
    SendCustomRequest,
    SendCustomResponse,
)
from barulogix.api.schemas.packages import DelayedPackageResponse
from barulogix.services.conductors import ConductorRepository
from barulogix.services.errors import ValidationError
from barulogix.services.notifications import MAX_PAGE_SIZE, NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Package, conductor or notification not found"},
    },
)


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check for notifications namespace."""
    return {"status": "healthy", "namespace": "notifications"}


# -----------------------------------------------------------------------------
# Inbox
# -----------------------------------------------------------------------------


@router.get(
    "/conductor/{conductor_id}",
    response_model=NotificationPageResponse,
    summary="List a conductor's notifications",
    description="Newest first, with total and unread counts.",
    responses={403: {"description": "Conductor is inactive"}},
)
async def list_conductor_notifications(
    conductor_id: UUID,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    unread_only: bool = False,
) -> NotificationPageResponse:
    page = await NotificationDispatcher(db).list_for_conductor(
        user.owner_id,
        conductor_id,
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


# -----------------------------------------------------------------------------
# Dispatch
# -----------------------------------------------------------------------------


@router.post(
    "/send-alert",
    response_model=SendAlertResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a delay alert",
)
async def send_alert(
    request: SendAlertRequest,
    user: CurrentUser,
    db: DbSession,
) -> SendAlertResponse:
    notification = await NotificationDispatcher(db).send_delay_alert(
        user.owner_id, request.package_id, request.conductor_id, request.days_late
    )
    return SendAlertResponse(
        message="Alerta enviada exitosamente",
        notification=NotificationResponse.from_model(notification),
    )


@router.post(
    "/send-bulk-alerts",
    response_model=SendBulkAlertsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send delay alerts for many packages",
    description="One alert per package, grouped per conductor in the response.",
)
async def send_bulk_alerts(
    request: SendBulkAlertsRequest,
    user: CurrentUser,
    db: DbSession,
) -> SendBulkAlertsResponse:
    result = await NotificationDispatcher(db).send_bulk_delay_alerts(
        user.owner_id, request.package_ids
    )
    return SendBulkAlertsResponse(
        message=(
            f"{result.total_packages} alertas enviadas a "
            f"{len(result.conductor_stats)} conductores"
        ),
        total_packages=result.total_packages,
        conductor_stats=[
            ConductorAlertStats(
                conductor_id=entry.conductor_id,
                conductor_name=entry.conductor_name,
                total_alerts=entry.total_alerts,
                trackings=entry.trackings,
            )
            for entry in result.conductor_stats
        ],
    )


@router.post(
    "/send-custom",
    response_model=SendCustomResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to conductors",
    description="Sends to the listed conductors, or to every active one with send_to_all.",
)
async def send_custom(
    request: SendCustomRequest,
    user: CurrentUser,
    db: DbSession,
) -> SendCustomResponse:
    result = await NotificationDispatcher(db).send_custom_message(
        user.owner_id,
        request.message,
        conductor_ids=request.conductor_ids,
        send_to_all=request.send_to_all,
    )
    return SendCustomResponse(
        message=f"Mensaje enviado a {len(result.notifications)} conductores",
        total_sent=len(result.notifications),
        conductors=[ConductorSummary.from_model(c) for c in result.conductors],
    )


# -----------------------------------------------------------------------------
# Read state
# -----------------------------------------------------------------------------


@router.api_route(
    "/mark-read",
    methods=["PUT", "POST"],
    response_model=MarkReadResponse,
    summary="Mark notifications read",
    description=(
        "PUT or POST with notification_id for one notification, or with "
        "notification_ids / mark_all for many."
    ),
)
async def mark_read(
    request: MarkReadRequest,
    user: CurrentUser,
    db: DbSession,
) -> MarkReadResponse:
    if request.conductor_id is None:
        raise ValidationError("conductor_id es requerido")
    await ConductorRepository(db).get(user.owner_id, request.conductor_id)

    dispatcher = NotificationDispatcher(db)
    if request.notification_id is not None:
        await dispatcher.mark_read(request.notification_id, request.conductor_id)
        return MarkReadResponse(message="Notificación marcada como leída", updated_count=1)

    updated = await dispatcher.mark_many_read(
        request.conductor_id,
        notification_ids=request.notification_ids,
        mark_all=request.mark_all,
    )
    return MarkReadResponse(
        message=f"{updated} notificaciones marcadas como leídas",
        updated_count=updated,
    )


# -----------------------------------------------------------------------------
# Delayed packages
# -----------------------------------------------------------------------------


@router.get(
    "/delayed-packages",
    response_model=DelayedPackagesResponse,
    summary="Delayed packages",
    description="Pending packages past the grace period, most late first, with per-driver stats.",
)
async def delayed_packages(
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    conductor_id: UUID | None = None,
) -> DelayedPackagesResponse:
    view = await NotificationDispatcher(db).delayed_packages(
        user.owner_id,
        grace_days=settings.operations.delay_grace_days,
        conductor_id=conductor_id,
    )
    return DelayedPackagesResponse(
        cutoff=view.cutoff,
        total_delayed=view.total_delayed,
        packages=[
            DelayedPackageResponse.from_model(package, days_late=late)
            for package, late in view.packages
        ],
        conductor_stats=[
            DelayedConductorResponse(
                conductor=ConductorSummary.from_model(entry.conductor),
                total_delayed=entry.total_delayed,
                total_days_late=entry.total_days_late,
                value_at_risk=float(entry.value_at_risk),
                package_ids=entry.package_ids,
            )
            for entry in view.conductor_stats
        ],
    )
