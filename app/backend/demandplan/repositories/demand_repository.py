"""Repository helpers for demand matrix source records."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from demandplan.models.entities import Client, ClientStatus, RecurringTask, Staff


class DemandRepository:
    """Read access to the records the demand matrix is computed from."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Recurring tasks ----------
    def list_recurring_tasks(self, *, include_inactive: bool = False) -> list[RecurringTask]:
        statement = select(RecurringTask).order_by(RecurringTask.name.asc(), RecurringTask.id.asc())
        if not include_inactive:
            statement = statement.where(RecurringTask.is_active.is_(True))
        return list(self.db.scalars(statement).unique().all())

    # ---------- Clients ----------
    def list_clients(self, *, include_inactive: bool = True) -> list[Client]:
        statement = select(Client).order_by(Client.legal_name.asc())
        if not include_inactive:
            statement = statement.where(Client.status == ClientStatus.ACTIVE)
        return list(self.db.scalars(statement).all())

    # ---------- Staff ----------
    def list_staff(self, *, active_only: bool = True) -> list[Staff]:
        statement = select(Staff).order_by(Staff.full_name.asc())
        if active_only:
            statement = statement.where(Staff.active.is_(True))
        return list(self.db.scalars(statement).all())

    def list_skill_types(self) -> list[str]:
        task_skills = self.db.scalars(
            select(RecurringTask.skill_type).where(RecurringTask.skill_type.is_not(None)).distinct()
        ).all()
        staff_skills = self.db.scalars(select(Staff.skill_type).distinct()).all()
        return sorted({skill.strip() for skill in [*task_skills, *staff_skills] if skill and skill.strip()})
