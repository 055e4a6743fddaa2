"""Serialization of demand matrices for API payloads and file exports."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from demandplan.services.demand_types import (
    DemandDataPoint,
    DemandMatrixConfigError,
    DemandMatrixData,
    ExportOptions,
    GroupingMode,
    TaskContribution,
    ZERO_HOURS,
    q1,
)

EXPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

BASE_COLUMNS = ["group_name", "month", "month_label", "demand_hours", "task_count", "client_count"]
REVENUE_COLUMNS = ["suggested_revenue", "expected_less_suggested"]
BREAKDOWN_COLUMNS = [
    "group_name",
    "month",
    "client_name",
    "task_name",
    "skill_type",
    "monthly_hours",
    "estimated_hours",
    "recurrence_pattern",
    "preferred_staff_id",
    "preferred_staff_name",
]


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def _normalize_format(format_name: str) -> str:
    normalized = (format_name or "").strip().lower()
    if normalized not in EXPORT_MEDIA_TYPES:
        raise DemandMatrixConfigError(
            f"format must be one of: {', '.join(EXPORT_MEDIA_TYPES)} (got {format_name!r})."
        )
    return normalized


def media_type_for(format_name: str) -> str:
    return EXPORT_MEDIA_TYPES[_normalize_format(format_name)]


def export_filename(grouping_mode: GroupingMode, format_name: str, today: date | None = None) -> str:
    stamp = (today or date.today()).isoformat()
    return f"demand-matrix-{grouping_mode.value}-{stamp}.{_normalize_format(format_name)}"


def _hours_text(value: Decimal) -> str:
    return str(q1(value))


def _revenue_enabled(matrix: DemandMatrixData, options: ExportOptions) -> bool:
    if not options.include_revenue or matrix.grouping_mode is not GroupingMode.CLIENT:
        return False
    if matrix.revenue is None:
        raise DemandMatrixConfigError("Revenue columns require a revenue-annotated client matrix.")
    return True


def _client_summary_enabled(matrix: DemandMatrixData, options: ExportOptions) -> bool:
    return options.include_client_summary and matrix.grouping_mode is GroupingMode.CLIENT


# ---------- Payload builders ----------
def contribution_payload(task: TaskContribution) -> dict[str, object]:
    return {
        "task_id": task.task_id,
        "client_id": task.client_id,
        "client_name": task.client_name,
        "task_name": task.task_name,
        "skill_type": task.skill_type,
        "monthly_hours": str(task.monthly_hours),
        "estimated_hours": str(task.estimated_hours),
        "recurrence_pattern": {
            "type": task.recurrence_pattern.type,
            "interval": task.recurrence_pattern.interval,
            "day_of_month": task.recurrence_pattern.day_of_month,
            "frequency": task.recurrence_pattern.frequency,
            "weekdays": list(task.recurrence_pattern.weekdays) if task.recurrence_pattern.weekdays else None,
            "month_of_year": task.recurrence_pattern.month_of_year,
        },
        "preferred_staff_id": task.preferred_staff_id,
        "preferred_staff_name": task.preferred_staff_name,
    }


def data_point_payload(
    matrix: DemandMatrixData,
    point: DemandDataPoint,
    *,
    include_breakdown: bool,
    include_revenue: bool,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "group_key": point.skill_type,
        "group_name": matrix.group_label(point.skill_type),
        "month": point.month,
        "month_label": point.month_label,
        "demand_hours": str(point.demand_hours),
        "task_count": point.task_count,
        "client_count": point.client_count,
    }
    if include_revenue and matrix.revenue is not None:
        payload["suggested_revenue"] = str(point.suggested_revenue)
        payload["expected_less_suggested"] = str(
            matrix.revenue.client_expected_less_suggested.get(point.skill_type)
        )
    if include_breakdown:
        payload["task_breakdown"] = [contribution_payload(task) for task in point.task_breakdown]
    return payload


def revenue_totals_payload(matrix: DemandMatrixData) -> dict[str, str] | None:
    totals = matrix.revenue_totals
    if totals is None:
        return None
    return {
        "total_expected_revenue": str(totals.total_expected_revenue),
        "total_suggested_revenue": str(totals.total_suggested_revenue),
        "total_expected_less_suggested": str(totals.total_expected_less_suggested),
    }


def client_summary_payload(matrix: DemandMatrixData, *, include_revenue: bool) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for client_id in matrix.skills:
        summary = matrix.skill_summary[client_id]
        row: dict[str, object] = {
            "client_id": client_id,
            "client_name": matrix.group_label(client_id),
            "total_hours": str(summary.total_hours),
            "task_count": summary.task_count,
        }
        if include_revenue and matrix.revenue is not None:
            revenue = matrix.revenue
            row["hourly_rate"] = str(revenue.client_hourly_rates[client_id])
            row["expected_revenue"] = str(revenue.client_expected_revenue[client_id])
            row["suggested_revenue"] = str(revenue.client_suggested_revenue[client_id])
            row["expected_less_suggested"] = str(revenue.client_expected_less_suggested[client_id])
        rows.append(row)
    rows.sort(key=lambda row: Decimal(str(row["total_hours"])), reverse=True)
    return rows


def recurrence_summary(matrix: DemandMatrixData) -> list[dict[str, object]]:
    """Task count and hours per recurrence type across the whole matrix."""

    task_ids: dict[str, set[str]] = {}
    hours: dict[str, Decimal] = {}
    for point in matrix.data_points:
        for task in point.task_breakdown:
            pattern_type = task.recurrence_pattern.recurrence_type
            label = pattern_type.value if pattern_type is not None else str(task.recurrence_pattern.type)
            task_ids.setdefault(label, set()).add(task.task_id)
            hours[label] = hours.get(label, ZERO_HOURS) + task.monthly_hours
    return [
        {"recurrence_type": label, "task_count": len(task_ids[label]), "total_hours": str(q1(hours[label]))}
        for label in sorted(task_ids)
    ]


def trend_analysis(matrix: DemandMatrixData) -> list[dict[str, object]]:
    """Month-over-month percentage change of demand per group."""

    hours_by_cell = {(point.skill_type, point.month): point.demand_hours for point in matrix.data_points}
    rows: list[dict[str, object]] = []
    for group in matrix.skills:
        previous: Decimal | None = None
        months: list[dict[str, object]] = []
        for month in matrix.months:
            current = hours_by_cell.get((group, month.key), ZERO_HOURS)
            change: str | None = None
            if previous is not None and previous > ZERO_HOURS:
                change = str(q1((current - previous) / previous * 100))
            months.append({"month": month.key, "hours": str(current), "change_percent": change})
            previous = current
        rows.append({"group_key": group, "group_name": matrix.group_label(group), "months": months})
    return rows


def matrix_payload(matrix: DemandMatrixData, *, include_breakdown: bool = False) -> dict[str, object]:
    """Full JSON-ready view of a matrix, used by the HTTP API."""

    payload: dict[str, object] = {
        "grouping_mode": matrix.grouping_mode.value,
        "months": [{"key": month.key, "label": month.label} for month in matrix.months],
        "horizon": [{"key": month.key, "label": month.label} for month in matrix.horizon],
        "skills": list(matrix.skills),
        "group_labels": dict(matrix.group_labels),
        "data_points": [
            data_point_payload(
                matrix,
                point,
                include_breakdown=include_breakdown,
                include_revenue=matrix.revenue is not None,
            )
            for point in matrix.data_points
        ],
        "total_demand": str(matrix.total_demand),
        "total_tasks": matrix.total_tasks,
        "total_clients": matrix.total_clients,
        "skill_summary": {
            group: {
                "total_hours": str(summary.total_hours),
                "task_count": summary.task_count,
                "client_count": summary.client_count,
            }
            for group, summary in matrix.skill_summary.items()
        },
        "issues": [
            {"severity": issue.severity.value, "code": issue.code, "message": issue.message}
            for issue in matrix.issues
        ],
    }
    if matrix.revenue is not None:
        payload["revenue_totals"] = revenue_totals_payload(matrix)
        payload["client_summary"] = client_summary_payload(matrix, include_revenue=True)
    return payload


# ---------- Serializers ----------
def _csv_text(matrix: DemandMatrixData, options: ExportOptions) -> str:
    include_revenue = _revenue_enabled(matrix, options)
    sio = io.StringIO()
    writer = csv.writer(sio, lineterminator="\n")

    header = list(BASE_COLUMNS)
    if include_revenue:
        header.extend(REVENUE_COLUMNS)
    writer.writerow(header)
    for point in matrix.data_points:
        row = [
            matrix.group_label(point.skill_type),
            point.month,
            point.month_label,
            _hours_text(point.demand_hours),
            point.task_count,
            point.client_count,
        ]
        if include_revenue and matrix.revenue is not None:
            row.append(_hours_text(point.suggested_revenue or Decimal("0")))
            row.append(_hours_text(matrix.revenue.client_expected_less_suggested[point.skill_type]))
        writer.writerow(row)

    if options.include_task_breakdown:
        writer.writerow([])
        writer.writerow(BREAKDOWN_COLUMNS)
        for point in matrix.data_points:
            for task in point.task_breakdown:
                writer.writerow(
                    [
                        matrix.group_label(point.skill_type),
                        point.month,
                        task.client_name,
                        task.task_name,
                        task.skill_type,
                        _hours_text(task.monthly_hours),
                        _hours_text(task.estimated_hours),
                        task.recurrence_pattern.summary(),
                        task.preferred_staff_id or "",
                        task.preferred_staff_name or "",
                    ]
                )

    if _client_summary_enabled(matrix, options):
        summary_rows = client_summary_payload(matrix, include_revenue=include_revenue)
        writer.writerow([])
        columns = list(summary_rows[0].keys()) if summary_rows else ["client_id", "client_name", "total_hours", "task_count"]
        writer.writerow(columns)
        for summary_row in summary_rows:
            writer.writerow(
                [
                    _hours_text(Decimal(str(summary_row[column])))
                    if column not in {"client_id", "client_name", "task_count"}
                    else summary_row[column]
                    for column in columns
                ]
            )

    if options.include_recurrence_summary:
        writer.writerow([])
        writer.writerow(["recurrence_type", "task_count", "total_hours"])
        for pattern_row in recurrence_summary(matrix):
            writer.writerow([pattern_row["recurrence_type"], pattern_row["task_count"], pattern_row["total_hours"]])

    return sio.getvalue()


def _json_document(
    matrix: DemandMatrixData,
    options: ExportOptions,
    generated_at: datetime,
) -> dict[str, object]:
    include_revenue = _revenue_enabled(matrix, options)
    document: dict[str, object] = {
        "metadata": {
            "generated_at": generated_at.isoformat(),
            "grouping_mode": matrix.grouping_mode.value,
            "first_month": matrix.months[0].key if matrix.months else None,
            "last_month": matrix.months[-1].key if matrix.months else None,
            "month_count": len(matrix.months),
            "group_count": len(matrix.skills),
            "data_point_count": len(matrix.data_points),
            "total_demand": str(matrix.total_demand),
            "total_tasks": matrix.total_tasks,
            "total_clients": matrix.total_clients,
            "options": {
                "include_task_breakdown": options.include_task_breakdown,
                "include_client_summary": options.include_client_summary,
                "include_revenue": include_revenue,
                "include_recurrence_summary": options.include_recurrence_summary,
                "include_trend_analysis": options.include_trend_analysis,
            },
            **options.extra_metadata,
        },
        "matrix_data": [
            data_point_payload(
                matrix,
                point,
                include_breakdown=options.include_task_breakdown,
                include_revenue=include_revenue,
            )
            for point in matrix.data_points
        ],
    }
    if _client_summary_enabled(matrix, options):
        document["client_summary"] = client_summary_payload(matrix, include_revenue=include_revenue)
    if include_revenue:
        document["revenue_totals"] = revenue_totals_payload(matrix)
    if options.include_recurrence_summary:
        document["recurrence_patterns"] = recurrence_summary(matrix)
    if options.include_trend_analysis:
        document["trend_analysis"] = trend_analysis(matrix)
    return document


def serialize(
    matrix: DemandMatrixData,
    options: ExportOptions,
    format_name: str,
    *,
    generated_at: datetime | None = None,
) -> str:
    """Render ``matrix`` as CSV or JSON text."""

    normalized = _normalize_format(format_name)
    if normalized == "csv":
        return _csv_text(matrix, options)
    if normalized == "json":
        document = _json_document(matrix, options, generated_at or datetime.now(timezone.utc))
        return json.dumps(document, indent=2)
    raise DemandMatrixConfigError(f"format {normalized!r} is binary; use serialize_xlsx.")


def serialize_xlsx(matrix: DemandMatrixData, options: ExportOptions) -> bytes:
    from openpyxl import Workbook

    include_revenue = _revenue_enabled(matrix, options)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Matrix Data"

    header = list(BASE_COLUMNS) + (list(REVENUE_COLUMNS) if include_revenue else [])
    sheet.append(header)
    for point in matrix.data_points:
        row: list[object] = [
            matrix.group_label(point.skill_type),
            point.month,
            point.month_label,
            float(point.demand_hours),
            point.task_count,
            point.client_count,
        ]
        if include_revenue and matrix.revenue is not None:
            row.append(float(point.suggested_revenue or 0))
            row.append(float(matrix.revenue.client_expected_less_suggested[point.skill_type]))
        sheet.append(row)

    summary = workbook.create_sheet("Summary")
    summary.append(["metric", "value"])
    summary.append(["total_demand_hours", float(matrix.total_demand)])
    summary.append(["total_tasks", matrix.total_tasks])
    summary.append(["total_clients", matrix.total_clients])
    totals = matrix.revenue_totals
    if include_revenue and totals is not None:
        summary.append(["total_expected_revenue", float(totals.total_expected_revenue)])
        summary.append(["total_suggested_revenue", float(totals.total_suggested_revenue)])
        summary.append(["total_expected_less_suggested", float(totals.total_expected_less_suggested)])

    if options.include_task_breakdown:
        breakdown = workbook.create_sheet("Task Breakdown")
        breakdown.append(BREAKDOWN_COLUMNS)
        for point in matrix.data_points:
            for task in point.task_breakdown:
                breakdown.append(
                    [
                        matrix.group_label(point.skill_type),
                        point.month,
                        task.client_name,
                        task.task_name,
                        task.skill_type,
                        float(task.monthly_hours),
                        float(task.estimated_hours),
                        task.recurrence_pattern.summary(),
                        task.preferred_staff_id or "",
                        task.preferred_staff_name or "",
                    ]
                )

    if _client_summary_enabled(matrix, options):
        clients = workbook.create_sheet("Revenue Analysis" if include_revenue else "Client Summary")
        summary_rows = client_summary_payload(matrix, include_revenue=include_revenue)
        if summary_rows:
            columns = list(summary_rows[0].keys())
            clients.append(columns)
            for summary_row in summary_rows:
                clients.append([summary_row[column] for column in columns])

    if options.include_recurrence_summary:
        patterns = workbook.create_sheet("Recurrence Patterns")
        patterns.append(["recurrence_type", "task_count", "total_hours"])
        for pattern_row in recurrence_summary(matrix):
            patterns.append(
                [pattern_row["recurrence_type"], pattern_row["task_count"], float(Decimal(str(pattern_row["total_hours"])))]
            )

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def export_file(
    matrix: DemandMatrixData,
    options: ExportOptions,
    format_name: str,
    *,
    today: date | None = None,
) -> ExportFilePayload:
    normalized = _normalize_format(format_name)
    if normalized == "xlsx":
        content = serialize_xlsx(matrix, options)
    else:
        content = serialize(matrix, options, normalized).encode("utf-8")
    return ExportFilePayload(
        media_type=EXPORT_MEDIA_TYPES[normalized],
        filename=export_filename(matrix.grouping_mode, normalized, today),
        content=content,
    )
