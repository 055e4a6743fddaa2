from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from demandplan.models.entities import Client, ClientStatus, RecurringTask, Staff

MATRIX_URL = "/api/v1/demand-matrix"
BASE_QUERY = {"start_month": "2025-01", "horizon_months": 3}


def _create_client(db: Session, *, name: str, hourly_rate: Decimal | None, monthly_revenue: Decimal) -> Client:
    now = datetime.utcnow()
    row = Client(
        legal_name=name,
        status=ClientStatus.ACTIVE,
        hourly_rate=hourly_rate,
        expected_monthly_revenue=monthly_revenue,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _create_staff(db: Session, *, name: str, skill_type: str, capacity: Decimal) -> Staff:
    row = Staff(full_name=name, skill_type=skill_type, monthly_capacity_hours=capacity, active=True)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _create_task(
    db: Session,
    *,
    client: Client,
    name: str,
    skill_type: str,
    hours: str,
    recurrence_type: str = "Monthly",
    month_of_year: int | None = None,
    day_of_month: int | None = None,
    preferred_staff: Staff | None = None,
    is_active: bool = True,
) -> RecurringTask:
    now = datetime.utcnow()
    row = RecurringTask(
        client_id=client.id,
        name=name,
        skill_type=skill_type,
        estimated_hours=Decimal(hours),
        recurrence_type=recurrence_type,
        recurrence_interval=1,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        preferred_staff_id=preferred_staff.id if preferred_staff is not None else None,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _seed(db: Session) -> dict[str, object]:
    acme = _create_client(db, name="Acme", hourly_rate=Decimal("100.00"), monthly_revenue=Decimal("1000.00"))
    beta = _create_client(db, name="Beta", hourly_rate=None, monthly_revenue=Decimal("0.00"))
    alice = _create_staff(db, name="Alice", skill_type="Junior", capacity=Decimal("120.0"))

    _create_task(db, client=acme, name="Bookkeeping", skill_type="Junior", hours="10", day_of_month=5, preferred_staff=alice)
    _create_task(db, client=beta, name="VAT return", skill_type="Senior", hours="6", recurrence_type="Quarterly", month_of_year=1)
    _create_task(db, client=acme, name="Archived", skill_type="Junior", hours="99", is_active=False)
    _create_task(db, client=beta, name="Legacy", skill_type="Junior", hours="3", recurrence_type="Fortnightly")
    return {"acme": acme, "beta": beta, "alice": alice}


def test_skill_matrix_endpoint(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(MATRIX_URL, params=BASE_QUERY)

    assert response.status_code == 200
    body = response.json()
    assert body["grouping_mode"] == "skill"
    assert body["skills"] == ["Junior", "Senior"]
    assert body["total_demand"] == "36.0"
    assert body["total_tasks"] == 4
    assert body["total_clients"] == 2
    assert [month["label"] for month in body["months"]] == ["Jan 2025", "Feb 2025", "Mar 2025"]
    assert [issue["code"] for issue in body["issues"]] == ["unknown_recurrence_type"]


def test_preferred_staff_filter_endpoint(client: TestClient, db_session: Session) -> None:
    seeded = _seed(db_session)
    alice = seeded["alice"]

    specific = client.get(
        MATRIX_URL,
        params={**BASE_QUERY, "preferred_staff": str(alice.id), "preferred_staff_mode": "specific"},
    )
    unassigned = client.get(MATRIX_URL, params={**BASE_QUERY, "preferred_staff_mode": "none"})

    assert specific.status_code == 200
    assert specific.json()["total_demand"] == "30.0"
    assert unassigned.json()["total_demand"] == "6.0"


def test_client_matrix_with_revenue(client: TestClient, db_session: Session) -> None:
    seeded = _seed(db_session)
    acme = seeded["acme"]

    response = client.get(MATRIX_URL, params={**BASE_QUERY, "grouping_mode": "client", "include_revenue": "true"})

    assert response.status_code == 200
    body = response.json()
    assert body["group_labels"][str(acme.id)] == "Acme"
    assert body["revenue_totals"] == {
        "total_expected_revenue": "3000.00",
        "total_suggested_revenue": "3000.00",
        "total_expected_less_suggested": "0.00",
    }
    assert "missing_hourly_rate" in [issue["code"] for issue in body["issues"]]
    assert body["client_summary"][0]["client_name"] == "Acme"


def test_month_preset_and_custom_range(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    quarter = client.get(MATRIX_URL, params={"start_month": "2025-01", "horizon_months": 12, "month_preset": "quarter"})
    custom = client.get(MATRIX_URL, params={**BASE_QUERY, "month_start": 1, "month_end": 2})

    assert [month["key"] for month in quarter.json()["months"]] == ["2025-01", "2025-02", "2025-03"]
    assert len(quarter.json()["horizon"]) == 12
    assert custom.json()["total_demand"] == "20.0"


def test_drill_down_endpoint(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(
        f"{MATRIX_URL}/drill-down",
        params={**BASE_QUERY, "group_key": "Junior", "month_key": "2025-02", "include_breakdown": "true"},
    )
    empty = client.get(f"{MATRIX_URL}/drill-down", params={**BASE_QUERY, "group_key": "Senior", "month_key": "2025-02"})

    assert response.status_code == 200
    body = response.json()
    assert body["demand_hours"] == "10.0"
    assert body["task_count"] == 1
    assert body["tasks"][0]["task_name"] == "Bookkeeping"
    assert body["tasks"][0]["preferred_staff_name"] == "Alice"
    assert empty.status_code == 200
    assert empty.json()["tasks"] == []


def test_validation_endpoint(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(f"{MATRIX_URL}/validation", params=BASE_QUERY)

    assert response.status_code == 200
    body = response.json()
    assert body["has_errors"] is False
    assert any(message.startswith("[warning] ") for message in body["issues"])
    assert any(message.startswith("[info] Senior has 6.0 demand hours") for message in body["issues"])
    assert not any(message.startswith("[info] Junior has") for message in body["issues"])


def test_filter_options_endpoint(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(f"{MATRIX_URL}/filter-options")

    assert response.status_code == 200
    body = response.json()
    assert body["skills"] == ["Junior", "Senior"]
    assert [row["name"] for row in body["clients"]] == ["Acme", "Beta"]
    assert [row["name"] for row in body["staff"]] == ["Alice"]
    assert body["preferred_staff_modes"] == ["all", "specific", "none"]


def test_csv_and_json_exports(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    csv_response = client.get("/api/v1/exports/demand-matrix", params={**BASE_QUERY, "format": "csv"})
    json_response = client.get(
        "/api/v1/exports/demand-matrix",
        params={**BASE_QUERY, "format": "json", "skill": "Junior", "include_trend_analysis": "true"},
    )

    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert 'filename="demand-matrix-skill-' in csv_response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(csv_response.text)))
    assert rows[0][:4] == ["group_name", "month", "month_label", "demand_hours"]
    assert len(rows) == 5

    assert json_response.status_code == 200
    document = json.loads(json_response.content)
    assert document["metadata"]["filters"]["skills"] == ["Junior"]
    assert document["metadata"]["total_demand"] == "30.0"
    assert len(document["trend_analysis"]) == 1


def test_configuration_errors_are_rejected(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    assert client.get("/api/v1/exports/demand-matrix", params={**BASE_QUERY, "format": "pdf"}).status_code == 422
    assert client.get(MATRIX_URL, params={**BASE_QUERY, "grouping_mode": "staff"}).status_code == 422
    assert client.get(MATRIX_URL, params={**BASE_QUERY, "month_start": 0, "month_end": 5}).status_code == 422
    assert client.get(MATRIX_URL, params={**BASE_QUERY, "preferred_staff_mode": "everyone"}).status_code == 422
    assert client.get(MATRIX_URL, params={"start_month": "January"}).status_code == 422

    response = client.get(MATRIX_URL, params={**BASE_QUERY, "month_preset": "decade"})
    assert response.status_code == 422
    assert "month preset" in response.json()["detail"]

    too_long = client.get(MATRIX_URL, params={**BASE_QUERY, "month_preset": "year"})
    assert too_long.status_code == 422
    assert "horizon has only 3" in too_long.json()["detail"]
