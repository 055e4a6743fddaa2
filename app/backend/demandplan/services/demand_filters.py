"""Filtering of demand matrices by recomputation.

A filtered matrix is rebuilt from the task contributions that survive the
filters. Totals are never carried over from the source matrix, so the result
obeys the same invariants as a freshly built one.
"""

from __future__ import annotations

import logging

from demandplan.services.demand_types import (
    DemandFilters,
    DemandMatrixConfigError,
    DemandMatrixData,
    GroupingMode,
    MonthDescriptor,
    MonthRange,
    PreferredStaffFilterMode,
    TaskContribution,
)
from demandplan.services.matrix_builder import assemble_matrix

logger = logging.getLogger(__name__)


def _normalize_mode(value: PreferredStaffFilterMode | str) -> PreferredStaffFilterMode:
    try:
        return PreferredStaffFilterMode(value.value if isinstance(value, PreferredStaffFilterMode) else str(value).lower())
    except ValueError as exc:
        raise DemandMatrixConfigError(
            f"preferred_staff_filter_mode must be one of: all, specific, none (got {value!r})."
        ) from exc


def select_months(horizon: tuple[MonthDescriptor, ...], month_range: MonthRange | None) -> tuple[MonthDescriptor, ...]:
    """Slice the horizon by inclusive zero-based indices."""

    if month_range is None:
        return horizon
    last_index = len(horizon) - 1
    if month_range.start < 0 or month_range.end > last_index:
        raise DemandMatrixConfigError(
            f"Month range {month_range.start}..{month_range.end} is outside the horizon 0..{last_index}."
        )
    if month_range.start > month_range.end:
        raise DemandMatrixConfigError(
            f"Month range start {month_range.start} must not be after end {month_range.end}."
        )
    return horizon[month_range.start : month_range.end + 1]


def staff_filter_passes(
    contribution: TaskContribution,
    mode: PreferredStaffFilterMode,
    preferred_staff: frozenset[str],
) -> bool:
    """Three-mode preferred staff rule, matched on exact staff ids."""

    if mode is PreferredStaffFilterMode.ALL:
        return True
    if mode is PreferredStaffFilterMode.NONE:
        return contribution.preferred_staff_id is None
    return contribution.preferred_staff_id is not None and contribution.preferred_staff_id in preferred_staff


def _passes(
    contribution: TaskContribution,
    *,
    skills: frozenset[str],
    clients: frozenset[str],
    mode: PreferredStaffFilterMode,
    preferred_staff: frozenset[str],
) -> bool:
    if skills and contribution.skill_type not in skills:
        return False
    if clients and contribution.client_id not in clients:
        return False
    return staff_filter_passes(contribution, mode, preferred_staff)


def _restrict_groups(matrix: DemandMatrixData, skills: frozenset[str], clients: frozenset[str]) -> list[str]:
    group_filter = clients if matrix.grouping_mode is GroupingMode.CLIENT else skills
    if not group_filter:
        return list(matrix.skills)
    return [group for group in matrix.skills if group in group_filter]


def filter_matrix(matrix: DemandMatrixData, filters: DemandFilters) -> DemandMatrixData:
    """Return a new matrix holding only contributions that pass ``filters``.

    Empty skill and client selections mean no restriction. The month range
    indexes the matrix horizon, so re-applying the same filters to a filtered
    matrix yields the same result.
    """

    mode = _normalize_mode(filters.preferred_staff_filter_mode)
    months = select_months(matrix.horizon, filters.month_range)
    month_keys = {month.key for month in months}
    skills = frozenset(filters.skills)
    clients = frozenset(filters.clients)
    preferred_staff = frozenset(filters.preferred_staff)

    cells: dict[tuple[str, str], list[TaskContribution]] = {}
    for point in matrix.data_points:
        if point.month not in month_keys:
            continue
        retained = [
            task
            for task in point.task_breakdown
            if _passes(task, skills=skills, clients=clients, mode=mode, preferred_staff=preferred_staff)
        ]
        if retained:
            cells[(point.skill_type, point.month)] = retained

    filtered = assemble_matrix(
        months=months,
        horizon=matrix.horizon,
        skills=_restrict_groups(matrix, skills, clients),
        group_labels=matrix.group_labels,
        grouping_mode=matrix.grouping_mode,
        cells=cells,
        issues=matrix.issues,
    )
    logger.debug(
        "Filtered demand matrix (mode=%s, skills=%d, clients=%d, staff=%d): %d -> %d cells, %s -> %s hours.",
        mode.value,
        len(skills),
        len(clients),
        len(preferred_staff),
        len(matrix.data_points),
        len(filtered.data_points),
        matrix.total_demand,
        filtered.total_demand,
    )
    return filtered
