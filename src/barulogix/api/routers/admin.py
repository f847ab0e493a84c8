"""Admin API router.

User management through the identity provider, operation history and
undoable bulk operations.
All endpoints require an admin caller (configured email or ``is_admin``
user metadata).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from barulogix.api.dependencies import AdminUser, AppSettings, DbSession, IdentityClient
from barulogix.api.schemas.admin import (
    AdminOperationRequest,
    AdminUserListResponse,
    AdminUserResponse,
    HistoryEntryResponse,
    HistoryListResponse,
    OperationResultResponse,
    UserActionRequest,
    UserActionResponse,
    UserStatsResponse,
)
from barulogix.services.admin_operations import AdminOperationsService
from barulogix.services.errors import ValidationError
from barulogix.services.history import OperationHistoryService, OperationType
from barulogix.services.identity import UserStats, is_admin_identity

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Admin role required"},
    },
)

_USER_ACTIONS = {"ban": True, "unban": False}


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check for admin namespace."""
    return {"status": "healthy", "namespace": "admin"}


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


@router.get(
    "/users",
    response_model=AdminUserListResponse,
    summary="List users",
    description="All identity provider accounts with ban and confirmation counts.",
)
async def list_users(
    admin: AdminUser,
    client: IdentityClient,
    settings: AppSettings,
) -> AdminUserListResponse:
    users = await client.list_users()
    stats = UserStats.from_users(users)
    logger.info(
        "Admin listed users",
        extra={"admin_id": str(admin.owner_id), "total": stats.total},
    )
    return AdminUserListResponse(
        users=[
            AdminUserResponse.from_identity(
                u,
                is_admin=is_admin_identity(u.email, u.user_metadata, settings.auth.admin_emails),
            )
            for u in users
        ],
        stats=UserStatsResponse(
            total=stats.total,
            active=stats.active,
            banned=stats.banned,
            confirmed=stats.confirmed,
        ),
    )


@router.put(
    "/users/{user_id}",
    response_model=UserActionResponse,
    summary="Ban or unban a user",
)
async def update_user(
    user_id: str,
    request: UserActionRequest,
    admin: AdminUser,
    client: IdentityClient,
    db: DbSession,
) -> UserActionResponse:
    banned = _USER_ACTIONS.get(request.action)
    if banned is None:
        raise ValidationError("Acción no válida", details={"action": request.action})
    if banned and user_id == str(admin.owner_id):
        raise ValidationError("No puedes banearte a ti mismo")

    user = await client.set_banned(user_id, banned)
    await OperationHistoryService(db).log(
        admin.owner_id,
        OperationType.USER_BAN if banned else OperationType.USER_UNBAN,
        f"Usuario {'baneado' if banned else 'desbaneado'}: {user.email or user_id}",
        details={"user_id": user_id},
        affected_records=1,
    )
    return UserActionResponse(
        message="Usuario baneado exitosamente" if banned else "Usuario desbaneado exitosamente",
        user=AdminUserResponse.from_identity(user),
    )


@router.delete(
    "/users/{user_id}",
    response_model=UserActionResponse,
    summary="Delete a user",
)
async def delete_user(
    user_id: str,
    admin: AdminUser,
    client: IdentityClient,
    db: DbSession,
) -> UserActionResponse:
    if user_id == str(admin.owner_id):
        raise ValidationError("No puedes eliminarte a ti mismo")

    await client.delete_user(user_id)
    await OperationHistoryService(db).log(
        admin.owner_id,
        OperationType.USER_DELETE,
        f"Usuario eliminado: {user_id}",
        details={"user_id": user_id},
        affected_records=1,
    )
    return UserActionResponse(message="Usuario eliminado exitosamente")


# -----------------------------------------------------------------------------
# Operation history
# -----------------------------------------------------------------------------


@router.get(
    "/history",
    response_model=HistoryListResponse,
    summary="Operation history",
    description="Latest bulk and admin operations performed by the caller.",
)
async def list_history(
    admin: AdminUser,
    db: DbSession,
    settings: AppSettings,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
) -> HistoryListResponse:
    entries = await OperationHistoryService(db).list_recent(
        admin.owner_id, limit or settings.operations.history_limit
    )
    return HistoryListResponse(
        operations=[HistoryEntryResponse.from_model(e) for e in entries],
        total=len(entries),
    )


# -----------------------------------------------------------------------------
# Bulk operations and undo
# -----------------------------------------------------------------------------


@router.post(
    "/operations",
    response_model=OperationResultResponse,
    summary="Run a bulk operation",
    description=(
        "Transfer packages, change states, dates or types of a conductor's packages, "
        "toggle all conductors or recalculate statistics. Changes can be undone."
    ),
)
async def run_operation(
    request: AdminOperationRequest,
    admin: AdminUser,
    db: DbSession,
) -> OperationResultResponse:
    service = AdminOperationsService(db)
    owner_id = admin.owner_id

    match request.operation:
        case "transfer_packages":
            outcome = await service.transfer_packages(
                owner_id,
                request.from_conductor_id,
                request.to_conductor_id,
                mode=request.transfer_type,
                tracking=request.single_tracking,
                trackings=request.bulk_trackings,
                confirmation=request.confirmation,
            )
        case "change_states" | "update_dates" | "change_types" if request.conductor_id is None:
            raise ValidationError("Conductor requerido")
        case "change_states":
            outcome = await service.change_states(
                owner_id, request.conductor_id, request.new_state
            )
        case "update_dates":
            outcome = await service.update_dates(owner_id, request.conductor_id, request.new_date)
        case "change_types":
            outcome = await service.change_types(owner_id, request.conductor_id, request.new_type)
        case "toggle_conductors":
            outcome = await service.toggle_conductors(owner_id)
        case "recalculate_stats":
            outcome = await service.recalculate_stats(owner_id)
        case _:
            raise ValidationError("Operación no válida", details={"operation": request.operation})

    return OperationResultResponse(
        message=outcome.message,
        affected_records=outcome.affected_records,
        details=outcome.details,
    )


@router.post(
    "/undo",
    response_model=OperationResultResponse,
    summary="Undo the latest operation",
    description="Reverts the caller's newest operation that can still be undone.",
)
async def undo_last_operation(admin: AdminUser, db: DbSession) -> OperationResultResponse:
    outcome = await AdminOperationsService(db).undo_last(admin.owner_id)
    return OperationResultResponse(
        message=outcome.message,
        affected_records=outcome.affected_records,
        details=outcome.details,
    )
