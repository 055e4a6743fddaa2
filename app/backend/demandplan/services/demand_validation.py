"""Integrity checks over a built or filtered demand matrix."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from demandplan.services.demand_types import (
    DemandMatrixData,
    GroupingMode,
    IssueSeverity,
    ValidationIssue,
    ZERO_HOURS,
    q1,
)


def _capacity_issues(
    matrix: DemandMatrixData,
    capacity_by_group: Mapping[str, Decimal] | None,
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    capacity = capacity_by_group or {}
    total_capacity = sum(capacity.values(), ZERO_HOURS)
    per_group = matrix.grouping_mode is GroupingMode.SKILL and total_capacity > ZERO_HOURS

    for group in matrix.skills:
        summary = matrix.skill_summary.get(group)
        if summary is None or summary.total_hours <= ZERO_HOURS:
            continue
        if per_group and capacity.get(group, ZERO_HOURS) > ZERO_HOURS:
            continue
        if not per_group and total_capacity > ZERO_HOURS:
            continue
        issues.append(
            ValidationIssue(
                IssueSeverity.INFO,
                "missing_capacity",
                f"{matrix.group_label(group)} has {summary.total_hours} demand hours but no known capacity; "
                "capacity data may be missing.",
            )
        )
    return issues


def _empty_month_issues(matrix: DemandMatrixData) -> list[ValidationIssue]:
    populated = {point.month for point in matrix.data_points}
    return [
        ValidationIssue(
            IssueSeverity.INFO,
            "empty_month",
            f"{month.label} has no demand data for any group.",
        )
        for month in matrix.months
        if month.key not in populated
    ]


def _consistency_issues(matrix: DemandMatrixData) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen: set[tuple[str, str]] = set()
    total_demand = ZERO_HOURS
    total_tasks = 0
    clients: set[str] = set()

    for point in matrix.data_points:
        cell = (point.skill_type, point.month)
        if cell in seen:
            issues.append(
                ValidationIssue(
                    IssueSeverity.ERROR,
                    "internal_consistency",
                    f"Duplicate cell {point.skill_type} / {point.month_label}.",
                )
            )
        seen.add(cell)

        hours = q1(sum((task.monthly_hours for task in point.task_breakdown), ZERO_HOURS))
        task_count = len(point.task_breakdown)
        client_count = len({task.client_id for task in point.task_breakdown})
        if (hours, task_count, client_count) != (point.demand_hours, point.task_count, point.client_count):
            issues.append(
                ValidationIssue(
                    IssueSeverity.ERROR,
                    "internal_consistency",
                    f"Cell {point.skill_type} / {point.month_label} stores {point.demand_hours} hours, "
                    f"{point.task_count} tasks, {point.client_count} clients but its breakdown sums to "
                    f"{hours} hours, {task_count} tasks, {client_count} clients.",
                )
            )
        total_demand += point.demand_hours
        total_tasks += point.task_count
        clients.update(task.client_id for task in point.task_breakdown)

    if q1(total_demand) != matrix.total_demand:
        issues.append(
            ValidationIssue(
                IssueSeverity.ERROR,
                "internal_consistency",
                f"Matrix total demand {matrix.total_demand} does not match cell sum {q1(total_demand)}.",
            )
        )
    if total_tasks != matrix.total_tasks:
        issues.append(
            ValidationIssue(
                IssueSeverity.ERROR,
                "internal_consistency",
                f"Matrix total tasks {matrix.total_tasks} does not match cell sum {total_tasks}.",
            )
        )
    if len(clients) != matrix.total_clients:
        issues.append(
            ValidationIssue(
                IssueSeverity.ERROR,
                "internal_consistency",
                f"Matrix total clients {matrix.total_clients} does not match {len(clients)} distinct clients.",
            )
        )
    return issues


def collect_issues(
    matrix: DemandMatrixData,
    capacity_by_group: Mapping[str, Decimal] | None = None,
) -> list[ValidationIssue]:
    """All issues for ``matrix``: recorded input defects first, then checks.

    Capacity is compared per skill in skill mode. In client mode, and whenever
    no per-skill capacity is known at all, only the total capacity counts.
    """

    return [
        *matrix.issues,
        *_capacity_issues(matrix, capacity_by_group),
        *_empty_month_issues(matrix),
        *_consistency_issues(matrix),
    ]


def validate(
    matrix: DemandMatrixData,
    capacity_by_group: Mapping[str, Decimal] | None = None,
) -> list[str]:
    return [issue.describe() for issue in collect_issues(matrix, capacity_by_group)]
