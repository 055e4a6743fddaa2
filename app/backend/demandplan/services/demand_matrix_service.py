"""Application service wiring source records to the demand matrix engine."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from functools import lru_cache

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from demandplan.core.config import get_settings
from demandplan.models.entities import RecurringTask
from demandplan.repositories.demand_repository import DemandRepository
from demandplan.services import demand_export, demand_validation, drill_down, matrix_builder, revenue
from demandplan.services.demand_filters import filter_matrix
from demandplan.services.demand_types import (
    DemandFilters,
    DemandMatrixConfigError,
    DemandMatrixData,
    ExportOptions,
    GroupingMode,
    IssueSeverity,
    MonthDescriptor,
    PreferredStaffFilterMode,
    RecurrencePattern,
    RecurringTaskAssignment,
    ZERO_HOURS,
)
from demandplan.services.horizon import build_horizon, resolve_month_range

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DemandMatrixRequest:
    grouping_mode: str | None = None
    start_month: date | None = None
    horizon_months: int | None = None
    skills: list[str] = field(default_factory=list)
    clients: list[str] = field(default_factory=list)
    preferred_staff: list[str] = field(default_factory=list)
    preferred_staff_mode: str = PreferredStaffFilterMode.ALL.value
    month_preset: str | None = None
    month_start: int | None = None
    month_end: int | None = None
    include_revenue: bool = False


@lru_cache(maxsize=get_settings().matrix_cache_size)
def build_matrix_cached(
    assignments: tuple[RecurringTaskAssignment, ...],
    horizon: tuple[MonthDescriptor, ...],
    grouping_mode: GroupingMode,
) -> DemandMatrixData:
    """Memoized build; inputs are frozen records so the key is the data itself."""

    return matrix_builder.build(assignments, horizon, grouping_mode)


def to_assignment(row: RecurringTask) -> RecurringTaskAssignment:
    staff = row.preferred_staff
    return RecurringTaskAssignment(
        id=str(row.id),
        client_id=str(row.client_id) if row.client_id is not None else None,
        client_name=row.client.legal_name if row.client is not None else "",
        task_name=row.name,
        skill_type=row.skill_type,
        estimated_hours=Decimal(str(row.estimated_hours)),
        recurrence_pattern=RecurrencePattern(
            type=row.recurrence_type,
            interval=row.recurrence_interval or 1,
            day_of_month=row.day_of_month,
            weekdays=tuple(row.weekdays) if row.weekdays else None,
            month_of_year=row.month_of_year,
        ),
        preferred_staff_id=str(row.preferred_staff_id) if row.preferred_staff_id is not None else None,
        preferred_staff_name=staff.full_name if staff is not None else None,
        start_date=row.due_date,
        end_date=row.end_date,
        is_active=row.is_active,
    )


@contextmanager
def _config_errors_as_http() -> Iterator[None]:
    try:
        yield
    except DemandMatrixConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


class DemandMatrixService:
    """Service computing demand matrices, drill-downs, validation and exports."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = DemandRepository(db)
        self.settings = get_settings()

    # ---------- Source data ----------
    def load_assignments(self) -> tuple[RecurringTaskAssignment, ...]:
        return tuple(to_assignment(row) for row in self.repo.list_recurring_tasks())

    def _horizon(self, request: DemandMatrixRequest) -> tuple[MonthDescriptor, ...]:
        start = request.start_month or date.today()
        return build_horizon(start, request.horizon_months or self.settings.default_horizon_months)

    def _filters(self, request: DemandMatrixRequest, horizon_length: int) -> DemandFilters:
        return DemandFilters(
            skills=tuple(value.strip() for value in request.skills if value.strip()),
            clients=tuple(value.strip() for value in request.clients if value.strip()),
            preferred_staff=tuple(value.strip() for value in request.preferred_staff if value.strip()),
            preferred_staff_filter_mode=request.preferred_staff_mode,
            month_range=resolve_month_range(
                request.month_preset,
                horizon_length=horizon_length,
                start=request.month_start,
                end=request.month_end,
            ),
        )

    def _revenue_inputs(self, month_count: int) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
        rates: dict[str, Decimal] = {}
        expected: dict[str, Decimal] = {}
        for client in self.repo.list_clients():
            client_id = str(client.id)
            if client.hourly_rate is not None:
                rates[client_id] = Decimal(str(client.hourly_rate))
            expected[client_id] = Decimal(str(client.expected_monthly_revenue or 0)) * month_count
        return rates, expected

    def _capacity_by_skill(self, month_count: int) -> dict[str, Decimal]:
        capacity: dict[str, Decimal] = {}
        for member in self.repo.list_staff():
            hours = Decimal(str(member.monthly_capacity_hours or 0)) * month_count
            capacity[member.skill_type] = capacity.get(member.skill_type, ZERO_HOURS) + hours
        return capacity

    def _compute(self, request: DemandMatrixRequest) -> DemandMatrixData:
        grouping_mode = GroupingMode.parse(request.grouping_mode or self.settings.default_grouping_mode)
        horizon = self._horizon(request)
        matrix = build_matrix_cached(self.load_assignments(), horizon, grouping_mode)
        filtered = filter_matrix(matrix, self._filters(request, len(horizon)))
        if request.include_revenue and grouping_mode is GroupingMode.CLIENT:
            rates, expected = self._revenue_inputs(len(filtered.months))
            filtered = revenue.annotate(filtered, rates, expected)
        return filtered

    # ---------- Public operations ----------
    def compute_matrix(self, request: DemandMatrixRequest) -> DemandMatrixData:
        with _config_errors_as_http():
            return self._compute(request)

    def read_matrix(self, request: DemandMatrixRequest, *, include_breakdown: bool = False) -> dict[str, object]:
        matrix = self.compute_matrix(request)
        return demand_export.matrix_payload(matrix, include_breakdown=include_breakdown)

    def drill_down(self, request: DemandMatrixRequest, *, group_key: str, month_key: str) -> dict[str, object]:
        matrix = self.compute_matrix(request)
        point = drill_down.resolve_cell(matrix, group_key, month_key)
        tasks = drill_down.resolve(matrix, group_key, month_key)
        return {
            "group_key": group_key,
            "group_name": matrix.group_label(group_key),
            "month": month_key,
            "month_label": point.month_label if point is not None else None,
            "demand_hours": str(point.demand_hours) if point is not None else str(ZERO_HOURS),
            "task_count": len(tasks),
            "client_count": point.client_count if point is not None else 0,
            "tasks": [demand_export.contribution_payload(task) for task in tasks],
        }

    def validation_report(self, request: DemandMatrixRequest) -> dict[str, object]:
        matrix = self.compute_matrix(request)
        issues = demand_validation.collect_issues(matrix, self._capacity_by_skill(len(matrix.months)))
        return {
            "issues": [issue.describe() for issue in issues],
            "has_errors": any(issue.severity is IssueSeverity.ERROR for issue in issues),
        }

    def filter_options(self) -> dict[str, object]:
        return {
            "skills": self.repo.list_skill_types(),
            "clients": [
                {"id": str(client.id), "name": client.legal_name}
                for client in self.repo.list_clients()
            ],
            "staff": [
                {"id": str(member.id), "name": member.full_name, "skill_type": member.skill_type}
                for member in self.repo.list_staff()
            ],
            "month_presets": ["quarter", "half-year", "year", "custom"],
            "preferred_staff_modes": [mode.value for mode in PreferredStaffFilterMode],
        }

    def export_matrix(
        self,
        request: DemandMatrixRequest,
        *,
        format_name: str,
        options: ExportOptions,
    ) -> demand_export.ExportFilePayload:
        with _config_errors_as_http():
            matrix = self._compute(request)
            exported = demand_export.export_file(matrix, options, format_name)
        logger.info(
            "Exported %s-grouped demand matrix as %s (%d bytes).",
            matrix.grouping_mode.value,
            exported.filename,
            len(exported.content),
        )
        return exported
