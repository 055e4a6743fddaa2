from __future__ import annotations

from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from demandplan.db.base import Base
from demandplan.db.dependencies import get_db_session
import demandplan.models.entities  # noqa: F401
from demandplan.main import create_app
from demandplan.models.entities import Client, RecurringTask, Staff
from demandplan.services.demand_types import MonthDescriptor, RecurrencePattern, RecurringTaskAssignment
from demandplan.services.horizon import build_horizon

TEST_TABLES = [
    Client.__table__,
    Staff.__table__,
    RecurringTask.__table__,
]


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine, tables=TEST_TABLES)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=TEST_TABLES)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def horizon_2025() -> tuple[MonthDescriptor, ...]:
    return build_horizon(date(2025, 1, 1), 12)


def make_assignment(
    task_id: str,
    *,
    client_id: str | None,
    client_name: str,
    skill_type: str | None,
    hours: str,
    recurrence_type: str = "Monthly",
    month_of_year: int | None = None,
    staff_id: str | None = None,
    staff_name: str | None = None,
) -> RecurringTaskAssignment:
    return RecurringTaskAssignment(
        id=task_id,
        client_id=client_id,
        client_name=client_name,
        task_name=f"Task {task_id}",
        skill_type=skill_type,
        estimated_hours=Decimal(hours),
        recurrence_pattern=RecurrencePattern(type=recurrence_type, interval=1, month_of_year=month_of_year),
        preferred_staff_id=staff_id,
        preferred_staff_name=staff_name,
    )


@pytest.fixture()
def quarter_2025() -> tuple[MonthDescriptor, ...]:
    return build_horizon(date(2025, 1, 1), 3)


@pytest.fixture()
def sample_assignments() -> tuple[RecurringTaskAssignment, ...]:
    """Two clients, three skills, two staff members over Jan-Mar 2025.

    Skill view: Junior 14.5 h every month, Senior 6 h in Jan, CPA 20 h in Mar.
    Client view: Acme 16/10/10 h, Beta 4.5/4.5/24.5 h. Total 69.5 h.
    """

    return (
        make_assignment(
            "t-1", client_id="client-a", client_name="Acme", skill_type="Junior", hours="10",
            staff_id="staff-1", staff_name="Alice",
        ),
        make_assignment(
            "t-2", client_id="client-a", client_name="Acme", skill_type="Senior", hours="6",
            recurrence_type="Quarterly", month_of_year=1,
        ),
        make_assignment(
            "t-3", client_id="client-b", client_name="Beta", skill_type="Junior", hours="4.5",
            staff_id="staff-2", staff_name="Bob",
        ),
        make_assignment(
            "t-4", client_id="client-b", client_name="Beta", skill_type="CPA", hours="20",
            recurrence_type="Annually", month_of_year=3, staff_id="staff-1", staff_name="Alice",
        ),
    )
