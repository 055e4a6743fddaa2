"""Demand matrix read endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from demandplan.db.dependencies import get_db_session
from demandplan.services.demand_matrix_service import DemandMatrixRequest, DemandMatrixService
from demandplan.services.demand_types import DemandMatrixConfigError
from demandplan.services.horizon import parse_month_key

router = APIRouter(prefix="/demand-matrix", tags=["demand-matrix"])


def matrix_request(
    grouping_mode: str | None = Query(default=None),
    start_month: str | None = Query(default=None, description="First horizon month as YYYY-MM."),
    horizon_months: int | None = Query(default=None, ge=1, le=60),
    skill: list[str] | None = Query(default=None),
    client: list[str] | None = Query(default=None),
    preferred_staff: list[str] | None = Query(default=None),
    preferred_staff_mode: str = Query(default="all"),
    month_preset: str | None = Query(default=None),
    month_start: int | None = Query(default=None),
    month_end: int | None = Query(default=None),
    include_revenue: bool = Query(default=False),
) -> DemandMatrixRequest:
    try:
        start = parse_month_key(start_month) if start_month else None
    except DemandMatrixConfigError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return DemandMatrixRequest(
        grouping_mode=grouping_mode,
        start_month=start,
        horizon_months=horizon_months,
        skills=skill or [],
        clients=client or [],
        preferred_staff=preferred_staff or [],
        preferred_staff_mode=preferred_staff_mode,
        month_preset=month_preset,
        month_start=month_start,
        month_end=month_end,
        include_revenue=include_revenue,
    )


def _demand_service(db: Session) -> DemandMatrixService:
    return DemandMatrixService(db)


@router.get("")
def get_demand_matrix(
    include_breakdown: bool = Query(default=False),
    request: DemandMatrixRequest = Depends(matrix_request),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _demand_service(db).read_matrix(request, include_breakdown=include_breakdown)


@router.get("/drill-down")
def get_drill_down(
    group_key: str = Query(...),
    month_key: str = Query(...),
    request: DemandMatrixRequest = Depends(matrix_request),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _demand_service(db).drill_down(request, group_key=group_key, month_key=month_key)


@router.get("/validation")
def get_validation(
    request: DemandMatrixRequest = Depends(matrix_request),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _demand_service(db).validation_report(request)


@router.get("/filter-options")
def get_filter_options(db: Session = Depends(get_db_session)) -> dict[str, object]:
    return _demand_service(db).filter_options()
