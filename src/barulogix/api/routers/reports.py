"""Reports API router.

Aggregated reports over a due-date window and downloadable exports.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import Response

from barulogix.api.dependencies import CurrentUser, DbSession, today
from barulogix.api.schemas.reports import ExportRequest, ReportRequest, ReportResponse
from barulogix.services.reports import ReportBuilder

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
    responses={
        401: {"description": "Authentication required"},
    },
)


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check for reports namespace."""
    return {"status": "healthy", "namespace": "reports"}


@router.post(
    "/generate",
    response_model=ReportResponse,
    summary="Generate a report",
    description=(
        "General reports cover every conductor; specific reports need a conductor_id. "
        "Metrics are computed over packages due in the selected window."
    ),
)
async def generate_report(
    request: ReportRequest,
    user: CurrentUser,
    db: DbSession,
) -> ReportResponse:
    report = await ReportBuilder(db).generate(
        user.owner_id,
        request.report_scope,
        request.date_filter.resolve(today()),
        request.conductor_id,
    )
    return ReportResponse.from_report(report)


@router.post(
    "/export",
    summary="Export packages and conductors",
    description="Returns a JSON or CSV attachment.",
    responses={
        200: {
            "content": {"application/json": {}, "text/csv": {}},
            "description": "Export file",
        }
    },
)
async def export_data(
    request: ExportRequest,
    user: CurrentUser,
    db: DbSession,
) -> Response:
    export = await ReportBuilder(db).export(
        user.owner_id,
        request.format,
        request.date_filter.resolve(today()),
        conductor_id=request.conductor_id,
        include_conductors=request.include_conductors,
        include_packages=request.include_packages,
    )
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
