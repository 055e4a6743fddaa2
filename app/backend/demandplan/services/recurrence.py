"""Expansion of recurring task assignments into monthly hour contributions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date, timedelta
from decimal import Decimal

from demandplan.services.demand_types import (
    IssueSeverity,
    MonthDescriptor,
    RecurrenceType,
    RecurringTaskAssignment,
    ValidationIssue,
    ZERO_HOURS,
    q1,
)
from demandplan.services.horizon import month_end

logger = logging.getLogger(__name__)


def _anchor_date(assignment: RecurringTaskAssignment, horizon: Sequence[MonthDescriptor]) -> date:
    if assignment.start_date is not None:
        return assignment.start_date
    return horizon[0].start


def _occurrence_window(month_start: date, assignment: RecurringTaskAssignment) -> tuple[date, date] | None:
    first = month_start
    last = month_end(month_start)
    if assignment.start_date is not None and assignment.start_date > first:
        first = assignment.start_date
    if assignment.end_date is not None and assignment.end_date < last:
        last = assignment.end_date
    if first > last:
        return None
    return first, last


def _months_between(anchor_year: int, anchor_month: int, value: date) -> int:
    return (value.year - anchor_year) * 12 + (value.month - anchor_month)


def _occurrence_day(month_start: date, preferred_day: int) -> date:
    last_day = month_end(month_start).day
    return month_start.replace(day=min(max(preferred_day, 1), last_day))


def _js_weekday(value: date) -> int:
    """0=Sunday .. 6=Saturday, the convention stored in ``weekdays``."""

    return (value.weekday() + 1) % 7


Window = tuple[date, date]


def _daily_hours(assignment: RecurringTaskAssignment, window: Window, month_start: date, anchor: date) -> Decimal:
    first, last = window
    days = (last - first).days + 1
    return assignment.estimated_hours * Decimal(days) / Decimal(assignment.recurrence_pattern.effective_interval)


def _weekly_hours(assignment: RecurringTaskAssignment, window: Window, month_start: date, anchor: date) -> Decimal:
    first, last = window
    pattern = assignment.recurrence_pattern
    if pattern.weekdays:
        selected = set(pattern.weekdays)
        occurrences = sum(
            1
            for offset in range((last - first).days + 1)
            if _js_weekday(first + timedelta(days=offset)) in selected
        )
    else:
        # Monday-based calendar weeks with at least one day in the window.
        first_monday = first - timedelta(days=first.weekday())
        last_monday = last - timedelta(days=last.weekday())
        occurrences = (last_monday - first_monday).days // 7 + 1
    return assignment.estimated_hours * Decimal(occurrences) / Decimal(pattern.effective_interval)


def _periodic_hours(
    assignment: RecurringTaskAssignment,
    window: Window,
    *,
    month_start: date,
    anchor: date,
    block_months: int,
    anchor_month: int,
) -> Decimal:
    pattern = assignment.recurrence_pattern
    if _months_between(anchor.year, anchor_month, month_start) % block_months != 0:
        return ZERO_HOURS
    occurrence = _occurrence_day(month_start, pattern.day_of_month or anchor.day)
    first, last = window
    if not first <= occurrence <= last:
        return ZERO_HOURS
    return assignment.estimated_hours


def _monthly_hours(assignment: RecurringTaskAssignment, window: Window, month_start: date, anchor: date) -> Decimal:
    return _periodic_hours(
        assignment,
        window,
        month_start=month_start,
        anchor=anchor,
        block_months=assignment.recurrence_pattern.effective_interval,
        anchor_month=anchor.month,
    )


def _quarterly_hours(assignment: RecurringTaskAssignment, window: Window, month_start: date, anchor: date) -> Decimal:
    pattern = assignment.recurrence_pattern
    return _periodic_hours(
        assignment,
        window,
        month_start=month_start,
        anchor=anchor,
        block_months=3 * pattern.effective_interval,
        anchor_month=pattern.month_of_year or anchor.month,
    )


def _annual_hours(assignment: RecurringTaskAssignment, window: Window, month_start: date, anchor: date) -> Decimal:
    pattern = assignment.recurrence_pattern
    return _periodic_hours(
        assignment,
        window,
        month_start=month_start,
        anchor=anchor,
        block_months=12 * pattern.effective_interval,
        anchor_month=pattern.month_of_year or anchor.month,
    )


_CALCULATORS: dict[RecurrenceType, Callable[[RecurringTaskAssignment, Window, date, date], Decimal]] = {
    RecurrenceType.DAILY: _daily_hours,
    RecurrenceType.WEEKLY: _weekly_hours,
    RecurrenceType.MONTHLY: _monthly_hours,
    RecurrenceType.QUARTERLY: _quarterly_hours,
    RecurrenceType.ANNUALLY: _annual_hours,
}


def expand_with_issues(
    assignment: RecurringTaskAssignment,
    horizon: Sequence[MonthDescriptor],
) -> tuple[dict[str, Decimal], list[ValidationIssue]]:
    """Return the hours an assignment contributes per month key.

    Months without an occurrence are omitted. Data defects never raise: they are
    reported as issues and the assignment contributes nothing.
    """

    issues: list[ValidationIssue] = []
    pattern = assignment.recurrence_pattern
    recurrence_type = pattern.recurrence_type
    if recurrence_type is None:
        message = (
            f"Task {assignment.id} ({assignment.task_name}) has unrecognized recurrence type "
            f"{pattern.type!r}; it contributes no demand."
        )
        logger.warning(message)
        issues.append(ValidationIssue(IssueSeverity.WARNING, "unknown_recurrence_type", message))
        return {}, issues

    if pattern.interval is not None and pattern.interval < 1:
        message = (
            f"Task {assignment.id} ({assignment.task_name}) has recurrence interval {pattern.interval}; "
            "treated as 1."
        )
        issues.append(ValidationIssue(IssueSeverity.WARNING, "invalid_recurrence_interval", message))

    if not assignment.is_active or not horizon:
        return {}, issues
    if assignment.estimated_hours is None or assignment.estimated_hours <= ZERO_HOURS:
        return {}, issues

    calculator = _CALCULATORS[recurrence_type]
    anchor = _anchor_date(assignment, horizon)
    hours: dict[str, Decimal] = {}
    for month in horizon:
        window = _occurrence_window(month.start, assignment)
        if window is None:
            continue
        value = q1(calculator(assignment, window, month.start, anchor))
        if value > ZERO_HOURS:
            hours[month.key] = value
    return hours, issues


def expand(assignment: RecurringTaskAssignment, horizon: Sequence[MonthDescriptor]) -> dict[str, Decimal]:
    hours, _ = expand_with_issues(assignment, horizon)
    return hours
