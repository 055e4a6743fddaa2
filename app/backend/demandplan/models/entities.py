"""ORM entities for client, staff and recurring task source records."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from demandplan.db.base import Base


class ClientStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PROSPECT = "prospect"


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        CheckConstraint("hourly_rate >= 0", name="ck_clients_hourly_rate_non_negative"),
        CheckConstraint("expected_monthly_revenue >= 0", name="ck_clients_expected_revenue_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    legal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ClientStatus] = mapped_column(
        SQLEnum(
            ClientStatus,
            name="client_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=ClientStatus.ACTIVE,
    )
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    expected_monthly_revenue: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class Staff(Base):
    __tablename__ = "staff"
    __table_args__ = (
        CheckConstraint("monthly_capacity_hours >= 0", name="ck_staff_capacity_non_negative"),
        Index("ix_staff_skill_type", "skill_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    skill_type: Mapped[str] = mapped_column(String(64), nullable=False)
    monthly_capacity_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 1), nullable=False, default=Decimal("0.0")
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class RecurringTask(Base):
    __tablename__ = "recurring_tasks"
    __table_args__ = (
        CheckConstraint("recurrence_interval IS NULL OR recurrence_interval >= 1", name="ck_recurring_tasks_interval"),
        Index("ix_recurring_tasks_client_id", "client_id"),
        Index("ix_recurring_tasks_preferred_staff_id", "preferred_staff_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    skill_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    estimated_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    recurrence_type: Mapped[str] = mapped_column(String(32), nullable=False)
    recurrence_interval: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weekdays: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    month_of_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    preferred_staff_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    client: Mapped[Client] = relationship(lazy="joined")
    preferred_staff: Mapped[Staff | None] = relationship(lazy="joined")
