"""Construction of the unfiltered demand matrix."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from types import MappingProxyType

from demandplan.services.demand_types import (
    DemandDataPoint,
    DemandMatrixData,
    GroupingMode,
    GroupSummary,
    IssueSeverity,
    MonthDescriptor,
    RecurringTaskAssignment,
    TaskContribution,
    ValidationIssue,
    ZERO_HOURS,
    q1,
)
from demandplan.services.horizon import ensure_valid_horizon
from demandplan.services.recurrence import expand_with_issues

logger = logging.getLogger(__name__)


def group_key_for(contribution: TaskContribution, grouping_mode: GroupingMode) -> str:
    if grouping_mode is GroupingMode.CLIENT:
        return contribution.client_id
    return contribution.skill_type


def summarize_cell(
    group_key: str,
    month: MonthDescriptor,
    breakdown: Sequence[TaskContribution],
) -> DemandDataPoint:
    """Derive every cell aggregate from its task breakdown."""

    return DemandDataPoint(
        skill_type=group_key,
        month=month.key,
        month_label=month.label,
        demand_hours=q1(sum((task.monthly_hours for task in breakdown), ZERO_HOURS)),
        task_count=len(breakdown),
        client_count=len({task.client_id for task in breakdown}),
        task_breakdown=tuple(breakdown),
    )


def assemble_matrix(
    *,
    months: Sequence[MonthDescriptor],
    horizon: Sequence[MonthDescriptor],
    skills: Sequence[str],
    group_labels: Mapping[str, str],
    grouping_mode: GroupingMode,
    cells: Mapping[tuple[str, str], Sequence[TaskContribution]],
    issues: Iterable[ValidationIssue] = (),
) -> DemandMatrixData:
    """Build a matrix from per-cell task breakdowns, recomputing all totals.

    Cells with an empty breakdown are dropped. Data points are ordered by group
    (in ``skills`` order) and then by month.
    """

    month_by_key = {month.key: month for month in months}
    group_order = {group: index for index, group in enumerate(skills)}
    month_order = {month.key: index for index, month in enumerate(months)}

    data_points: list[DemandDataPoint] = []
    for (group_key, month_key), breakdown in cells.items():
        if not breakdown or month_key not in month_by_key or group_key not in group_order:
            continue
        data_points.append(summarize_cell(group_key, month_by_key[month_key], breakdown))
    data_points.sort(key=lambda point: (group_order[point.skill_type], month_order[point.month]))

    summary_hours: dict[str, Decimal] = {group: ZERO_HOURS for group in skills}
    summary_tasks: dict[str, int] = {group: 0 for group in skills}
    summary_clients: dict[str, set[str]] = {group: set() for group in skills}
    all_clients: set[str] = set()
    total_demand = ZERO_HOURS
    total_tasks = 0
    for point in data_points:
        total_demand += point.demand_hours
        total_tasks += point.task_count
        summary_hours[point.skill_type] += point.demand_hours
        summary_tasks[point.skill_type] += point.task_count
        for task in point.task_breakdown:
            summary_clients[point.skill_type].add(task.client_id)
            all_clients.add(task.client_id)

    skill_summary = {
        group: GroupSummary(
            total_hours=q1(summary_hours[group]),
            task_count=summary_tasks[group],
            client_count=len(summary_clients[group]),
        )
        for group in skills
    }

    return DemandMatrixData(
        months=tuple(months),
        horizon=tuple(horizon),
        skills=tuple(skills),
        group_labels=MappingProxyType({group: group_labels.get(group, group) for group in skills}),
        grouping_mode=grouping_mode,
        data_points=tuple(data_points),
        total_demand=q1(total_demand),
        total_tasks=total_tasks,
        total_clients=len(all_clients),
        skill_summary=MappingProxyType(skill_summary),
        issues=tuple(issues),
    )


def _malformed_reason(assignment: RecurringTaskAssignment) -> str | None:
    missing = []
    if not assignment.skill_type or not str(assignment.skill_type).strip():
        missing.append("skill type")
    if not assignment.client_id or not str(assignment.client_id).strip():
        missing.append("client id")
    if not missing:
        return None
    return " and ".join(missing)


def build(
    assignments: Iterable[RecurringTaskAssignment],
    horizon: Sequence[MonthDescriptor],
    grouping_mode: GroupingMode | str = GroupingMode.SKILL,
) -> DemandMatrixData:
    """Expand recurring assignments into a demand matrix over ``horizon``."""

    mode = GroupingMode.parse(grouping_mode)
    months = ensure_valid_horizon(horizon)

    issues: list[ValidationIssue] = []
    cells: dict[tuple[str, str], list[TaskContribution]] = {}
    group_labels: dict[str, str] = {}
    assignment_count = 0

    for assignment in assignments:
        assignment_count += 1
        reason = _malformed_reason(assignment)
        if reason is not None:
            message = f"Task {assignment.id} ({assignment.task_name}) skipped: missing {reason}."
            logger.warning(message)
            issues.append(ValidationIssue(IssueSeverity.WARNING, "malformed_assignment", message))
            continue

        monthly_hours, expansion_issues = expand_with_issues(assignment, months)
        issues.extend(expansion_issues)

        client_id = str(assignment.client_id)
        skill_type = str(assignment.skill_type).strip()
        if mode is GroupingMode.CLIENT:
            group_labels.setdefault(client_id, assignment.client_name or client_id)
        else:
            group_labels.setdefault(skill_type, skill_type)

        for month_key, hours in monthly_hours.items():
            contribution = TaskContribution(
                task_id=assignment.id,
                client_id=client_id,
                client_name=assignment.client_name,
                task_name=assignment.task_name,
                skill_type=skill_type,
                monthly_hours=hours,
                estimated_hours=assignment.estimated_hours,
                recurrence_pattern=assignment.recurrence_pattern,
                preferred_staff_id=assignment.preferred_staff_id,
                preferred_staff_name=assignment.preferred_staff_name,
            )
            key = (group_key_for(contribution, mode), month_key)
            cells.setdefault(key, []).append(contribution)

    skills = sorted(group_labels, key=lambda group: (group_labels[group].lower(), group))
    matrix = assemble_matrix(
        months=months,
        horizon=months,
        skills=skills,
        group_labels=group_labels,
        grouping_mode=mode,
        cells=cells,
        issues=issues,
    )
    logger.info(
        "Built %s-grouped demand matrix: %d assignments, %d groups, %d cells, %s hours.",
        mode.value,
        assignment_count,
        len(matrix.skills),
        len(matrix.data_points),
        matrix.total_demand,
    )
    return matrix
