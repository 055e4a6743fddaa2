"""Month horizon helpers for the demand matrix."""

from __future__ import annotations

import calendar
from datetime import date

from demandplan.services.demand_types import DemandMatrixConfigError, MonthDescriptor, MonthRange

MONTH_PRESETS: dict[str, int] = {
    "quarter": 3,
    "half-year": 6,
    "year": 12,
}


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def month_label(value: date) -> str:
    return f"{calendar.month_abbr[value.month]} {value.year}"


def parse_month_key(value: str) -> date:
    try:
        year_text, month_text = value.strip().split("-")[:2]
        return date(int(year_text), int(month_text), 1)
    except (ValueError, AttributeError) as exc:
        raise DemandMatrixConfigError(f"Invalid month key {value!r}; expected YYYY-MM.") from exc


def next_month(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


def month_end(value: date) -> date:
    return date(value.year, value.month, calendar.monthrange(value.year, value.month)[1])


def month_descriptor(value: date) -> MonthDescriptor:
    start = date(value.year, value.month, 1)
    return MonthDescriptor(key=month_key(start), label=month_label(start), start=start)


def build_horizon(start_month: date, month_count: int = 12) -> tuple[MonthDescriptor, ...]:
    """Return ``month_count`` consecutive months beginning at ``start_month``."""

    if month_count < 1:
        raise DemandMatrixConfigError("Horizon must contain at least one month.")
    descriptors: list[MonthDescriptor] = []
    current = date(start_month.year, start_month.month, 1)
    for _ in range(month_count):
        descriptors.append(month_descriptor(current))
        current = next_month(current)
    return tuple(descriptors)


def ensure_valid_horizon(horizon: tuple[MonthDescriptor, ...] | list[MonthDescriptor]) -> tuple[MonthDescriptor, ...]:
    """Reject empty, unordered or gapped horizons."""

    months = tuple(horizon)
    if not months:
        raise DemandMatrixConfigError("Horizon must contain at least one month.")
    for previous, current in zip(months, months[1:]):
        if next_month(previous.start) != current.start:
            raise DemandMatrixConfigError(
                f"Horizon months must be contiguous and increasing: {previous.key} is followed by {current.key}."
            )
    return months


def resolve_month_range(
    preset: str | None,
    *,
    horizon_length: int,
    start: int | None = None,
    end: int | None = None,
) -> MonthRange | None:
    """Turn a named preset or custom indices into a ``MonthRange``.

    Presets are windows anchored at the first horizon month; a preset longer
    than the horizon is rejected. ``custom`` indices are passed through
    unchanged; range checks happen when the filter is applied.
    """

    normalized = (preset or "").strip().lower()
    if not normalized:
        if start is None and end is None:
            return None
        normalized = "custom"

    if normalized == "custom":
        return MonthRange(
            start=0 if start is None else start,
            end=horizon_length - 1 if end is None else end,
        )

    length = MONTH_PRESETS.get(normalized)
    if length is None:
        raise DemandMatrixConfigError(
            f"month preset must be one of: quarter, half-year, year, custom (got {preset!r})."
        )
    if length > horizon_length:
        raise DemandMatrixConfigError(
            f"month preset {normalized!r} spans {length} months but the horizon has only {horizon_length}."
        )
    return MonthRange(start=0, end=length - 1)
