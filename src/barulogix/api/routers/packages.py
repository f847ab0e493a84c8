"""Packages API router.

Package CRUD, search, statistics, bulk import and delivery reconciliation.
Every endpoint is scoped to the authenticated owner's conductors.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from barulogix.api.dependencies import (
    AppSettings,
    CurrentUser,
    DateFilterParams,
    DbSession,
    today,
)
from barulogix.api.schemas.common import ConductorSummary, PackageStatsResponse, SuccessResponse
from barulogix.api.schemas.packages import (
    BulkImportRequest,
    BulkImportResponse,
    BulkSearchItem,
    BulkSearchRequest,
    BulkSearchResponse,
    ByConductorResponse,
    DelayedPackageResponse,
    DeliveryRequest,
    DeliveryResponse,
    PackageCreateRequest,
    PackageListResponse,
    PackageResponse,
    PackageStatsEnvelope,
    PackageUpdateRequest,
    ReconciledItem,
)
from barulogix.db.models.base import PackageStatus
from barulogix.services.errors import ValidationError
from barulogix.services.packages import PackageFilters, PackageRepository, parse_shipment_type
from barulogix.services.reconciliation import DeliveryReconciliationService
from barulogix.services.statistics import (
    average_pending_delay,
    compute_stats,
    days_late,
    delayed_packages,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/packages",
    tags=["packages"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Package or conductor not found"},
    },
)


# -----------------------------------------------------------------------------
# Health Check
# -----------------------------------------------------------------------------


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check for packages namespace."""
    return {"status": "healthy", "namespace": "packages"}


# -----------------------------------------------------------------------------
# Listing and creation
# -----------------------------------------------------------------------------


@router.get(
    "",
    response_model=PackageListResponse,
    summary="List packages",
    description="Lists the owner's packages, newest first, optionally filtered by due date.",
)
async def list_packages(
    user: CurrentUser,
    db: DbSession,
    date_filter: DateFilterParams,
    conductor_id: UUID | None = None,
) -> PackageListResponse:
    date_range = date_filter.resolve(today())
    packages = await PackageRepository(db).list_for_owner(
        user.owner_id, date_range=date_range, conductor_id=conductor_id
    )
    return PackageListResponse(
        packages=[PackageResponse.from_model(p) for p in packages],
        total=len(packages),
    )


@router.post(
    "",
    response_model=PackageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a package",
    description="Creates a pending package. Only Dropi packages keep a value.",
)
async def create_package(
    request: PackageCreateRequest,
    user: CurrentUser,
    db: DbSession,
) -> PackageResponse:
    package = await PackageRepository(db).create(
        user.owner_id,
        tracking=request.tracking,
        conductor_id=request.conductor_id,
        shipment_type=request.shipment_type,
        due_date=request.due_date,
        value=request.value,
    )
    return PackageResponse.from_model(package)


# -----------------------------------------------------------------------------
# Search
# -----------------------------------------------------------------------------


@router.get(
    "/search",
    response_model=PackageListResponse,
    summary="Search packages",
    description="Combines tracking, conductor, type, status, due date and zone criteria.",
)
async def search_packages(
    user: CurrentUser,
    db: DbSession,
    date_filter: DateFilterParams,
    tracking: str | None = None,
    conductor_id: UUID | None = None,
    shipment_type: Annotated[str | None, Query(alias="type")] = None,
    package_status: Annotated[int | None, Query(alias="status")] = None,
    zone: str | None = None,
) -> PackageListResponse:
    try:
        status_filter = PackageStatus(package_status) if package_status is not None else None
    except ValueError as e:
        raise ValidationError("Estado inválido", details={"status": package_status}) from e

    filters = PackageFilters(
        tracking=tracking,
        conductor_id=conductor_id,
        shipment_type=parse_shipment_type(shipment_type) if shipment_type else None,
        status=status_filter,
        zone=zone,
    )
    packages = await PackageRepository(db).search(
        user.owner_id, filters, date_filter.resolve(today())
    )
    return PackageListResponse(
        packages=[PackageResponse.from_model(p) for p in packages],
        total=len(packages),
    )


@router.post(
    "/search/bulk",
    response_model=BulkSearchResponse,
    summary="Look up many trackings",
    description="Trims and de-duplicates the trackings, then splits them into found and missing.",
)
async def bulk_search(
    request: BulkSearchRequest,
    user: CurrentUser,
    db: DbSession,
) -> BulkSearchResponse:
    result = await PackageRepository(db).bulk_find_by_tracking(user.owner_id, request.trackings)
    now = datetime.now(UTC)
    found = [
        BulkSearchItem.from_model(
            package,
            days_late=(
                days_late(package.due_date, now)
                if package.status == PackageStatus.PENDING
                else None
            ),
        )
        for package in result.found
    ]
    return BulkSearchResponse(
        found=found,
        not_found=result.not_found,
        total_requested=result.total_requested,
        total_found=len(found),
    )


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------


@router.get(
    "/stats",
    response_model=PackageStatsEnvelope,
    summary="Owner-wide statistics",
)
async def package_stats(
    user: CurrentUser,
    db: DbSession,
    date_filter: DateFilterParams,
) -> PackageStatsEnvelope:
    date_range = date_filter.resolve(today())
    packages = await PackageRepository(db).list_for_owner(user.owner_id, date_range=date_range)
    return PackageStatsEnvelope(
        stats=PackageStatsResponse.from_stats(compute_stats(packages)),
        date_from=date_range.start,
        date_to=date_range.end,
    )


@router.get(
    "/by-conductor/{conductor_id}",
    response_model=ByConductorResponse,
    summary="Packages of one conductor",
    description="Lists a conductor's packages with statistics and the delayed subset.",
)
async def packages_by_conductor(
    conductor_id: UUID,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    date_filter: DateFilterParams,
) -> ByConductorResponse:
    conductor, packages = await PackageRepository(db).list_by_conductor(
        user.owner_id, conductor_id, date_filter.resolve(today())
    )
    now = datetime.now(UTC)
    delayed = delayed_packages(packages, now, settings.operations.delay_grace_days)
    return ByConductorResponse(
        conductor=ConductorSummary.from_model(conductor),
        packages=[PackageResponse.from_model(p) for p in packages],
        stats=PackageStatsResponse.from_stats(compute_stats(packages)),
        delayed=[
            DelayedPackageResponse.from_model(item.package, days_late=item.days_late)
            for item in delayed
        ],
        average_pending_delay_days=average_pending_delay(packages, now),
    )


# -----------------------------------------------------------------------------
# Bulk operations
# -----------------------------------------------------------------------------


@router.post(
    "/deliveries",
    response_model=DeliveryResponse,
    summary="Mark packages delivered or returned",
    description=(
        "Processes each tracking independently. Unknown, foreign or already "
        "transitioned trackings are reported in errors without failing the batch."
    ),
)
async def reconcile_deliveries(
    request: DeliveryRequest,
    user: CurrentUser,
    db: DbSession,
) -> DeliveryResponse:
    report = await DeliveryReconciliationService(db).reconcile(
        user.owner_id,
        request.trackings,
        request.operation,
        client_delivery_date=request.client_delivery_date,
    )
    return DeliveryResponse(
        message=report.message,
        processed_count=report.processed_count,
        total_count=report.total_count,
        updated=[
            ReconciledItem(
                id=item.package_id,
                tracking=item.tracking,
                shipment_type=item.shipment_type,
                conductor_name=item.conductor_name,
                conductor_zone=item.conductor_zone,
                previous_status=item.previous_status,
                new_status=item.new_status,
            )
            for item in report.updated
        ],
        errors=report.errors,
    )


@router.post(
    "/bulk",
    response_model=BulkImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import pasted packages",
    description="Creates pending packages from spreadsheet text, one row per line.",
)
async def bulk_import(
    request: BulkImportRequest,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
) -> BulkImportResponse:
    result = await PackageRepository(db).bulk_import(
        user.owner_id,
        shipment_type=request.shipment_type,
        data=request.data,
        conductor_id=request.conductor_id,
        due_date=request.due_date,
        min_tracking_length=settings.operations.min_tracking_length,
    )
    return BulkImportResponse(
        inserted=len(result.inserted),
        packages=[PackageResponse.from_model(p) for p in result.inserted],
        errors=result.errors,
        total_processed=result.total_processed,
    )


# -----------------------------------------------------------------------------
# Single package
# -----------------------------------------------------------------------------


@router.get(
    "/{package_id}",
    response_model=PackageResponse,
    summary="Get a package",
)
async def get_package(
    package_id: UUID,
    user: CurrentUser,
    db: DbSession,
) -> PackageResponse:
    package = await PackageRepository(db).get(user.owner_id, package_id)
    return PackageResponse.from_model(package)


@router.put(
    "/{package_id}",
    response_model=PackageResponse,
    summary="Update a package",
    description="Replaces the editable fields. An omitted status resets the package to pending.",
)
async def update_package(
    package_id: UUID,
    request: PackageUpdateRequest,
    user: CurrentUser,
    db: DbSession,
) -> PackageResponse:
    package = await PackageRepository(db).update(
        user.owner_id,
        package_id,
        tracking=request.tracking,
        conductor_id=request.conductor_id,
        shipment_type=request.shipment_type,
        due_date=request.due_date,
        status=request.status,
        value=request.value,
        client_delivery_date=request.client_delivery_date,
    )
    return PackageResponse.from_model(package)


@router.delete(
    "/{package_id}",
    response_model=SuccessResponse,
    summary="Delete a package",
)
async def delete_package(
    package_id: UUID,
    user: CurrentUser,
    db: DbSession,
) -> SuccessResponse:
    await PackageRepository(db).delete(user.owner_id, package_id)
    return SuccessResponse(message="Paquete eliminado exitosamente")
