"""Suggested revenue annotation for client-grouped matrices."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal
from types import MappingProxyType

from demandplan.services.demand_types import (
    ClientRevenue,
    DemandMatrixData,
    GroupingMode,
    IssueSeverity,
    RevenueTotals,
    ValidationIssue,
    ZERO_HOURS,
    ZERO_MONEY,
    q1,
    q2,
)

logger = logging.getLogger(__name__)


def annotate(
    matrix: DemandMatrixData,
    client_rates: Mapping[str, Decimal],
    client_expected_revenue: Mapping[str, Decimal],
) -> DemandMatrixData:
    """Attach suggested revenue per cell and revenue comparisons per client.

    Skill-grouped matrices are returned unchanged. ``suggested_revenue`` for a
    cell is its demand hours times the client's hourly rate; per client,
    ``expected_less_suggested`` is expected revenue minus the sum of suggested
    revenue over that client's cells.
    A missing-rate warning already carried by the matrix is not repeated.
    """

    if matrix.grouping_mode is not GroupingMode.CLIENT:
        return matrix

    issues = list(matrix.issues)
    reported = {(issue.code, issue.message) for issue in issues}
    rates: dict[str, Decimal] = {}
    for client_id in matrix.skills:
        rate = client_rates.get(client_id)
        if rate is None:
            summary = matrix.skill_summary.get(client_id)
            if summary is not None and summary.total_hours > ZERO_HOURS:
                message = (
                    f"Client {matrix.group_label(client_id)} has demand but no hourly rate; "
                    "suggested revenue is reported as 0."
                )
                if ("missing_hourly_rate", message) not in reported:
                    logger.warning(message)
                    issues.append(ValidationIssue(IssueSeverity.WARNING, "missing_hourly_rate", message))
            rate = ZERO_MONEY
        rates[client_id] = q2(rate)

    client_hours: dict[str, Decimal] = {client_id: ZERO_HOURS for client_id in matrix.skills}
    client_suggested: dict[str, Decimal] = {client_id: ZERO_MONEY for client_id in matrix.skills}
    data_points = []
    for point in matrix.data_points:
        suggested = q2(point.demand_hours * rates[point.skill_type])
        client_hours[point.skill_type] += point.demand_hours
        client_suggested[point.skill_type] += suggested
        data_points.append(replace(point, suggested_revenue=suggested))

    client_expected = {
        client_id: q2(client_expected_revenue.get(client_id, ZERO_MONEY)) for client_id in matrix.skills
    }
    client_difference = {
        client_id: q2(client_expected[client_id] - client_suggested[client_id]) for client_id in matrix.skills
    }

    total_expected = q2(sum(client_expected.values(), ZERO_MONEY))
    total_suggested = q2(sum(client_suggested.values(), ZERO_MONEY))
    revenue = ClientRevenue(
        totals=RevenueTotals(
            total_expected_revenue=total_expected,
            total_suggested_revenue=total_suggested,
            total_expected_less_suggested=q2(total_expected - total_suggested),
        ),
        client_totals=MappingProxyType({client_id: q1(hours) for client_id, hours in client_hours.items()}),
        client_hourly_rates=MappingProxyType(rates),
        client_suggested_revenue=MappingProxyType(
            {client_id: q2(value) for client_id, value in client_suggested.items()}
        ),
        client_expected_revenue=MappingProxyType(client_expected),
        client_expected_less_suggested=MappingProxyType(client_difference),
    )
    return replace(matrix, data_points=tuple(data_points), issues=tuple(issues), revenue=revenue)
