"""Export endpoint for demand matrix files."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from demandplan.api.routes.demand_matrix import matrix_request
from demandplan.db.dependencies import get_db_session
from demandplan.services.demand_matrix_service import DemandMatrixRequest, DemandMatrixService
from demandplan.services.demand_types import ExportOptions

router = APIRouter(prefix="/exports", tags=["exports"])


@router.get("/demand-matrix")
def export_demand_matrix(
    format: str = Query(default="csv"),
    include_task_breakdown: bool = Query(default=False),
    include_client_summary: bool = Query(default=False),
    include_recurrence_summary: bool = Query(default=False),
    include_trend_analysis: bool = Query(default=False),
    request: DemandMatrixRequest = Depends(matrix_request),
    db: Session = Depends(get_db_session),
) -> Response:
    options = ExportOptions(
        include_task_breakdown=include_task_breakdown,
        include_client_summary=include_client_summary,
        include_revenue=request.include_revenue,
        include_recurrence_summary=include_recurrence_summary,
        include_trend_analysis=include_trend_analysis,
        extra_metadata={
            "filters": {
                "skills": request.skills,
                "clients": request.clients,
                "preferred_staff": request.preferred_staff,
                "preferred_staff_mode": request.preferred_staff_mode,
                "month_preset": request.month_preset,
            }
        },
    )
    exported = DemandMatrixService(db).export_matrix(request, format_name=format, options=options)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
