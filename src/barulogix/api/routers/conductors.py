"""Conductors API router.

Manages the owner's delivery drivers ("conductores").
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, status

from barulogix.api.dependencies import CurrentUser, DbSession
from barulogix.api.schemas.common import SuccessResponse
from barulogix.api.schemas.conductors import (
    ConductorActiveRequest,
    ConductorListResponse,
    ConductorRequest,
    ConductorResponse,
    ZoneListResponse,
)
from barulogix.services.conductors import ConductorRepository

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/conductors",
    tags=["conductors"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Conductor not found"},
    },
)


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check for conductors namespace."""
    return {"status": "healthy", "namespace": "conductors"}


@router.get(
    "",
    response_model=ConductorListResponse,
    summary="List conductors",
)
async def list_conductors(
    user: CurrentUser,
    db: DbSession,
    active_only: bool = False,
    zone: str | None = None,
) -> ConductorListResponse:
    conductors = await ConductorRepository(db).list_for_owner(
        user.owner_id, active_only=active_only, zone=zone
    )
    return ConductorListResponse(
        conductors=[ConductorResponse.from_model(c) for c in conductors],
        total=len(conductors),
    )


@router.post(
    "",
    response_model=ConductorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a conductor",
)
async def create_conductor(
    request: ConductorRequest,
    user: CurrentUser,
    db: DbSession,
) -> ConductorResponse:
    conductor = await ConductorRepository(db).create(
        user.owner_id, name=request.name, zone=request.zone, phone=request.phone
    )
    return ConductorResponse.from_model(conductor)


@router.get(
    "/zones",
    response_model=ZoneListResponse,
    summary="List zones",
    description="Distinct zones of the owner's conductors, sorted.",
)
async def list_zones(user: CurrentUser, db: DbSession) -> ZoneListResponse:
    return ZoneListResponse(zones=await ConductorRepository(db).list_zones(user.owner_id))


@router.get(
    "/{conductor_id}",
    response_model=ConductorResponse,
    summary="Get a conductor",
)
async def get_conductor(
    conductor_id: UUID,
    user: CurrentUser,
    db: DbSession,
) -> ConductorResponse:
    conductor = await ConductorRepository(db).get(user.owner_id, conductor_id)
    return ConductorResponse.from_model(conductor)


@router.put(
    "/{conductor_id}",
    response_model=ConductorResponse,
    summary="Update a conductor",
)
async def update_conductor(
    conductor_id: UUID,
    request: ConductorRequest,
    user: CurrentUser,
    db: DbSession,
) -> ConductorResponse:
    conductor = await ConductorRepository(db).update(
        user.owner_id,
        conductor_id,
        name=request.name,
        zone=request.zone,
        phone=request.phone,
    )
    return ConductorResponse.from_model(conductor)


@router.patch(
    "/{conductor_id}/active",
    response_model=ConductorResponse,
    summary="Activate or deactivate a conductor",
    description="Inactive conductors keep their packages but receive no notifications.",
)
async def set_conductor_active(
    conductor_id: UUID,
    request: ConductorActiveRequest,
    user: CurrentUser,
    db: DbSession,
) -> ConductorResponse:
    conductor = await ConductorRepository(db).set_active(
        user.owner_id, conductor_id, request.active
    )
    return ConductorResponse.from_model(conductor)


@router.delete(
    "/{conductor_id}",
    response_model=SuccessResponse,
    summary="Delete a conductor",
    description="Permanently deletes a conductor. Refused while packages are assigned.",
    responses={409: {"description": "Conductor still has packages"}},
)
async def purge_conductor(
    conductor_id: UUID,
    user: CurrentUser,
    db: DbSession,
) -> SuccessResponse:
    await ConductorRepository(db).purge(user.owner_id, conductor_id)
    return SuccessResponse(message="Conductor eliminado exitosamente")
