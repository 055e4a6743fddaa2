"""Records shared by the demand matrix engine.

Every record is a frozen dataclass and mapping fields are read-only views:
a matrix is never modified after it is returned, filters and annotations
always produce a new instance. Hours are kept at one decimal place and money
at two, as ``Decimal`` values.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType

ZERO_HOURS = Decimal("0.0")
ZERO_MONEY = Decimal("0.00")
Q1 = Decimal("0.1")
Q2 = Decimal("0.01")


def q1(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(Q1, rounding=ROUND_HALF_UP)


def q2(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(Q2, rounding=ROUND_HALF_UP)


class DemandMatrixError(Exception):
    """Base error for the demand matrix engine."""


class DemandMatrixConfigError(DemandMatrixError, ValueError):
    """Raised when the caller asks for something the engine cannot do."""


class GroupingMode(str, enum.Enum):
    SKILL = "skill"
    CLIENT = "client"

    @classmethod
    def parse(cls, value: GroupingMode | str) -> GroupingMode:
        try:
            return cls(str(value.value if isinstance(value, GroupingMode) else value).strip().lower())
        except ValueError as exc:
            raise DemandMatrixConfigError(
                f"grouping_mode must be one of: skill, client (got {value!r})."
            ) from exc


class RecurrenceType(str, enum.Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    ANNUALLY = "Annually"

    @classmethod
    def parse(cls, raw: str | None) -> RecurrenceType | None:
        """Case-insensitive lookup; ``annual`` is accepted as an alias."""

        if not raw:
            return None
        normalized = raw.strip().lower()
        if normalized == "annual":
            normalized = "annually"
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None


class PreferredStaffFilterMode(str, enum.Enum):
    ALL = "all"
    SPECIFIC = "specific"
    NONE = "none"


class IssueSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    severity: IssueSeverity
    code: str
    message: str

    def describe(self) -> str:
        return f"[{self.severity.value}] {self.message}"


@dataclass(frozen=True, slots=True)
class RecurrencePattern:
    type: str
    interval: int = 1
    day_of_month: int | None = None
    frequency: int | None = None
    weekdays: tuple[int, ...] | None = None
    month_of_year: int | None = None

    @property
    def recurrence_type(self) -> RecurrenceType | None:
        return RecurrenceType.parse(self.type)

    @property
    def effective_interval(self) -> int:
        return self.interval if self.interval and self.interval > 0 else 1

    def summary(self) -> str:
        label = self.recurrence_type.value if self.recurrence_type else str(self.type)
        if self.effective_interval == 1:
            return label
        return f"{label} (every {self.effective_interval})"


@dataclass(frozen=True, slots=True)
class RecurringTaskAssignment:
    id: str
    client_id: str | None
    client_name: str
    task_name: str
    skill_type: str | None
    estimated_hours: Decimal
    recurrence_pattern: RecurrencePattern
    preferred_staff_id: str | None = None
    preferred_staff_name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class MonthDescriptor:
    key: str
    label: str
    start: date


@dataclass(frozen=True, slots=True)
class MonthRange:
    """Inclusive, zero-based indices into a matrix horizon."""

    start: int
    end: int


@dataclass(frozen=True, slots=True)
class TaskContribution:
    task_id: str
    client_id: str
    client_name: str
    task_name: str
    skill_type: str
    monthly_hours: Decimal
    estimated_hours: Decimal
    recurrence_pattern: RecurrencePattern
    preferred_staff_id: str | None = None
    preferred_staff_name: str | None = None


@dataclass(frozen=True, slots=True)
class DemandDataPoint:
    skill_type: str
    month: str
    month_label: str
    demand_hours: Decimal
    task_count: int
    client_count: int
    task_breakdown: tuple[TaskContribution, ...]
    suggested_revenue: Decimal | None = None


@dataclass(frozen=True, slots=True)
class GroupSummary:
    total_hours: Decimal
    task_count: int
    client_count: int


@dataclass(frozen=True, slots=True)
class RevenueTotals:
    total_expected_revenue: Decimal
    total_suggested_revenue: Decimal
    total_expected_less_suggested: Decimal


@dataclass(frozen=True, slots=True)
class ClientRevenue:
    totals: RevenueTotals
    client_totals: Mapping[str, Decimal]
    client_hourly_rates: Mapping[str, Decimal]
    client_suggested_revenue: Mapping[str, Decimal]
    client_expected_revenue: Mapping[str, Decimal]
    client_expected_less_suggested: Mapping[str, Decimal]


@dataclass(frozen=True, slots=True)
class DemandMatrixData:
    months: tuple[MonthDescriptor, ...]
    horizon: tuple[MonthDescriptor, ...]
    skills: tuple[str, ...]
    group_labels: Mapping[str, str]
    grouping_mode: GroupingMode
    data_points: tuple[DemandDataPoint, ...]
    total_demand: Decimal
    total_tasks: int
    total_clients: int
    skill_summary: Mapping[str, GroupSummary]
    issues: tuple[ValidationIssue, ...] = ()
    revenue: ClientRevenue | None = None

    @property
    def revenue_totals(self) -> RevenueTotals | None:
        return self.revenue.totals if self.revenue is not None else None

    def group_label(self, group_key: str) -> str:
        return self.group_labels.get(group_key, group_key)


@dataclass(frozen=True, slots=True)
class DemandFilters:
    skills: tuple[str, ...] = ()
    clients: tuple[str, ...] = ()
    preferred_staff: tuple[str, ...] = ()
    preferred_staff_filter_mode: PreferredStaffFilterMode = PreferredStaffFilterMode.ALL
    month_range: MonthRange | None = None


@dataclass(frozen=True, slots=True)
class ExportOptions:
    include_task_breakdown: bool = False
    include_client_summary: bool = False
    include_revenue: bool = False
    include_recurrence_summary: bool = False
    include_trend_analysis: bool = False
    extra_metadata: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra_metadata", MappingProxyType(dict(self.extra_metadata)))
