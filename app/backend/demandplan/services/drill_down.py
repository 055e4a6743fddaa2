"""Cell drill-down for demand matrices."""

from __future__ import annotations

from demandplan.services.demand_types import DemandDataPoint, DemandMatrixData, TaskContribution


def resolve_cell(matrix: DemandMatrixData, group_key: str, month_key: str) -> DemandDataPoint | None:
    for point in matrix.data_points:
        if point.skill_type == group_key and point.month == month_key:
            return point
    return None


def resolve(matrix: DemandMatrixData, group_key: str, month_key: str) -> tuple[TaskContribution, ...]:
    """Return the task contributions behind one cell.

    A cell without demand is absent from the matrix; that is an expected
    outcome and yields an empty tuple.
    """

    point = resolve_cell(matrix, group_key, month_key)
    if point is None:
        return ()
    return point.task_breakdown
