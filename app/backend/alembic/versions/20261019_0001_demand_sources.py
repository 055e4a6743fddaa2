"""demand matrix source tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


client_status = postgresql.ENUM("active", "inactive", "prospect", name="client_status", create_type=False)


def upgrade() -> None:
    client_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "clients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("legal_name", sa.String(length=255), nullable=False),
        sa.Column("status", client_status, nullable=False, server_default="active"),
        sa.Column("hourly_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("expected_monthly_revenue", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("hourly_rate >= 0", name="ck_clients_hourly_rate_non_negative"),
        sa.CheckConstraint("expected_monthly_revenue >= 0", name="ck_clients_expected_revenue_non_negative"),
    )

    op.create_table(
        "staff",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("skill_type", sa.String(length=64), nullable=False),
        sa.Column("monthly_capacity_hours", sa.Numeric(8, 1), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.CheckConstraint("monthly_capacity_hours >= 0", name="ck_staff_capacity_non_negative"),
    )
    op.create_index("ix_staff_skill_type", "staff", ["skill_type"])

    op.create_table(
        "recurring_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("skill_type", sa.String(length=64), nullable=True),
        sa.Column("estimated_hours", sa.Numeric(8, 2), nullable=False),
        sa.Column("recurrence_type", sa.String(length=32), nullable=False),
        sa.Column("recurrence_interval", sa.Integer(), nullable=True),
        sa.Column("weekdays", sa.JSON(), nullable=True),
        sa.Column("day_of_month", sa.Integer(), nullable=True),
        sa.Column("month_of_year", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("preferred_staff_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "recurrence_interval IS NULL OR recurrence_interval >= 1",
            name="ck_recurring_tasks_interval",
        ),
    )
    op.create_index("ix_recurring_tasks_client_id", "recurring_tasks", ["client_id"])
    op.create_index("ix_recurring_tasks_preferred_staff_id", "recurring_tasks", ["preferred_staff_id"])


def downgrade() -> None:
    op.drop_index("ix_recurring_tasks_preferred_staff_id", table_name="recurring_tasks")
    op.drop_index("ix_recurring_tasks_client_id", table_name="recurring_tasks")
    op.drop_table("recurring_tasks")
    op.drop_index("ix_staff_skill_type", table_name="staff")
    op.drop_table("staff")
    op.drop_table("clients")
    client_status.drop(op.get_bind(), checkfirst=True)
