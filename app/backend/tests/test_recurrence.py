from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from demandplan.services.demand_types import (
    DemandMatrixConfigError,
    MonthDescriptor,
    MonthRange,
    RecurrencePattern,
    RecurrenceType,
    RecurringTaskAssignment,
)
from demandplan.services.horizon import build_horizon, ensure_valid_horizon, parse_month_key, resolve_month_range
from demandplan.services.recurrence import expand, expand_with_issues


def _assignment(
    recurrence_type: str,
    *,
    hours: str = "10",
    interval: int = 1,
    day_of_month: int | None = None,
    weekdays: tuple[int, ...] | None = None,
    month_of_year: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    is_active: bool = True,
) -> RecurringTaskAssignment:
    return RecurringTaskAssignment(
        id="task-1",
        client_id="client-1",
        client_name="Acme",
        task_name="Bookkeeping",
        skill_type="Junior",
        estimated_hours=Decimal(hours),
        recurrence_pattern=RecurrencePattern(
            type=recurrence_type,
            interval=interval,
            day_of_month=day_of_month,
            weekdays=weekdays,
            month_of_year=month_of_year,
        ),
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
    )


def test_build_horizon_labels_and_year_rollover() -> None:
    horizon = build_horizon(date(2025, 11, 20), 3)

    assert [month.key for month in horizon] == ["2025-11", "2025-12", "2026-01"]
    assert [month.label for month in horizon] == ["Nov 2025", "Dec 2025", "Jan 2026"]
    assert horizon[0].start == date(2025, 11, 1)


def test_horizon_validation_rejects_empty_and_gapped_months() -> None:
    with pytest.raises(DemandMatrixConfigError):
        build_horizon(date(2025, 1, 1), 0)
    with pytest.raises(DemandMatrixConfigError):
        ensure_valid_horizon(())

    gapped = (
        MonthDescriptor(key="2025-01", label="Jan 2025", start=date(2025, 1, 1)),
        MonthDescriptor(key="2025-03", label="Mar 2025", start=date(2025, 3, 1)),
    )
    with pytest.raises(DemandMatrixConfigError):
        ensure_valid_horizon(gapped)


def test_parse_month_key() -> None:
    assert parse_month_key("2025-04") == date(2025, 4, 1)
    with pytest.raises(DemandMatrixConfigError):
        parse_month_key("April")


def test_month_presets_resolve_to_leading_windows() -> None:
    assert resolve_month_range("quarter", horizon_length=12) == MonthRange(0, 2)
    assert resolve_month_range("half-year", horizon_length=12) == MonthRange(0, 5)
    assert resolve_month_range("custom", horizon_length=12, start=3, end=4) == MonthRange(3, 4)
    assert resolve_month_range(None, horizon_length=12) is None
    with pytest.raises(DemandMatrixConfigError):
        resolve_month_range("fortnight", horizon_length=12)


def test_month_preset_longer_than_horizon_is_rejected() -> None:
    with pytest.raises(DemandMatrixConfigError, match="horizon has only 3"):
        resolve_month_range("year", horizon_length=3)
    assert resolve_month_range("quarter", horizon_length=3) == MonthRange(0, 2)


def test_recurrence_type_parsing_is_case_insensitive() -> None:
    assert RecurrenceType.parse("monthly") is RecurrenceType.MONTHLY
    assert RecurrenceType.parse("ANNUAL") is RecurrenceType.ANNUALLY
    assert RecurrenceType.parse("Fortnightly") is None
    assert RecurrenceType.parse(None) is None


def test_monthly_task_contributes_every_month() -> None:
    horizon = build_horizon(date(2025, 1, 1), 3)

    hours = expand(_assignment("Monthly"), horizon)

    assert hours == {"2025-01": Decimal("10.0"), "2025-02": Decimal("10.0"), "2025-03": Decimal("10.0")}


def test_monthly_interval_counts_from_start_date() -> None:
    horizon = build_horizon(date(2025, 1, 1), 4)

    hours = expand(_assignment("Monthly", interval=2, start_date=date(2025, 1, 15)), horizon)

    assert set(hours) == {"2025-01", "2025-03"}


def test_monthly_day_is_clamped_to_short_months() -> None:
    horizon = build_horizon(date(2025, 2, 1), 1)

    hours = expand(_assignment("Monthly", day_of_month=31), horizon)

    assert hours == {"2025-02": Decimal("10.0")}


def test_end_date_cuts_off_occurrences_after_it() -> None:
    horizon = build_horizon(date(2025, 1, 1), 3)

    hours = expand(_assignment("Monthly", day_of_month=15, end_date=date(2025, 2, 10)), horizon)

    assert set(hours) == {"2025-01"}


def test_quarterly_task_follows_month_of_year(horizon_2025: tuple[MonthDescriptor, ...]) -> None:
    hours = expand(_assignment("Quarterly", hours="6", month_of_year=2, day_of_month=10), horizon_2025)

    assert sorted(hours) == ["2025-02", "2025-05", "2025-08", "2025-11"]
    assert all(value == Decimal("6.0") for value in hours.values())


def test_annual_task_lands_in_one_month(horizon_2025: tuple[MonthDescriptor, ...]) -> None:
    hours = expand(_assignment("Annually", hours="40", month_of_year=6), horizon_2025)

    assert hours == {"2025-06": Decimal("40.0")}


def test_daily_task_counts_days_in_month() -> None:
    horizon = build_horizon(date(2025, 2, 1), 1)

    assert expand(_assignment("Daily", hours="2"), horizon) == {"2025-02": Decimal("56.0")}
    assert expand(_assignment("Daily", hours="2", interval=2), horizon) == {"2025-02": Decimal("28.0")}


def test_daily_task_starting_mid_month_counts_from_start_date() -> None:
    horizon = build_horizon(date(2025, 1, 1), 2)

    hours = expand(_assignment("Daily", hours="1", start_date=date(2025, 1, 15)), horizon)

    assert hours == {"2025-01": Decimal("17.0"), "2025-02": Decimal("28.0")}


def test_weekly_task_with_weekdays_counts_matching_days() -> None:
    horizon = build_horizon(date(2025, 1, 1), 1)

    # January 2025 has four Mondays and five Wednesdays.
    hours = expand(_assignment("Weekly", hours="1.5", weekdays=(1, 3)), horizon)

    assert hours == {"2025-01": Decimal("13.5")}


def test_weekly_task_without_weekdays_counts_calendar_weeks() -> None:
    horizon = build_horizon(date(2025, 1, 1), 1)

    hours = expand(_assignment("Weekly", hours="2"), horizon)

    assert hours == {"2025-01": Decimal("10.0")}


def test_unknown_recurrence_type_is_reported_not_raised(horizon_2025: tuple[MonthDescriptor, ...]) -> None:
    hours, issues = expand_with_issues(_assignment("Fortnightly"), horizon_2025)

    assert hours == {}
    assert [issue.code for issue in issues] == ["unknown_recurrence_type"]


def test_inactive_and_zero_hour_tasks_contribute_nothing(horizon_2025: tuple[MonthDescriptor, ...]) -> None:
    assert expand(_assignment("Monthly", is_active=False), horizon_2025) == {}
    assert expand(_assignment("Monthly", hours="0"), horizon_2025) == {}


def test_invalid_interval_is_treated_as_one() -> None:
    horizon = build_horizon(date(2025, 1, 1), 2)

    hours, issues = expand_with_issues(_assignment("Monthly", interval=0), horizon)

    assert set(hours) == {"2025-01", "2025-02"}
    assert [issue.code for issue in issues] == ["invalid_recurrence_interval"]
