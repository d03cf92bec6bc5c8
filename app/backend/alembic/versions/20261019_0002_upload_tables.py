"""synced upload tables and staff settings

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def _tenant_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
    ]


def _manager_columns() -> list[sa.Column]:
    return [
        sa.Column("client_group", sa.String(length=255), nullable=True),
        sa.Column("account_manager", sa.String(length=255), nullable=True),
        sa.Column("job_manager", sa.String(length=255), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "invoice_uploads",
        *_tenant_columns(),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        *_manager_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_invoice_uploads_org_date", "invoice_uploads", ["organization_id", "date"])

    op.create_table(
        "timesheet_uploads",
        *_tenant_columns(),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("staff", sa.String(length=255), nullable=True),
        sa.Column("time", sa.Numeric(10, 2), nullable=True),
        sa.Column("billable_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("capacity_reducing", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("billed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_manager_columns(),
        sa.Column("job_name", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_timesheet_uploads_org_date", "timesheet_uploads", ["organization_id", "date"])
    op.create_index("ix_timesheet_uploads_org_staff", "timesheet_uploads", ["organization_id", "staff"])

    op.create_table(
        "wip_timesheet_uploads",
        *_tenant_columns(),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("staff", sa.String(length=255), nullable=True),
        sa.Column("billable_amount", sa.Numeric(14, 2), nullable=True),
        *_manager_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_wip_timesheet_uploads_org", "wip_timesheet_uploads", ["organization_id"])

    op.create_table(
        "recoverability_timesheet_uploads",
        *_tenant_columns(),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("staff", sa.String(length=255), nullable=True),
        sa.Column("write_on_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("invoiced_amount", sa.Numeric(14, 2), nullable=True),
        *_manager_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_recoverability_uploads_org_date",
        "recoverability_timesheet_uploads",
        ["organization_id", "date"],
    )

    op.create_table(
        "staff_settings",
        *_tenant_columns(),
        sa.Column("staff_name", sa.String(length=255), nullable=False),
        sa.Column("default_daily_hours", sa.Numeric(5, 2), nullable=True),
        sa.Column("fte", sa.Numeric(4, 2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("report", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("target_billable_percentage", sa.Numeric(5, 2), nullable=True),
        sa.UniqueConstraint("organization_id", "staff_name", name="uq_staff_settings_org_staff"),
        sa.CheckConstraint(
            "target_billable_percentage IS NULL OR (target_billable_percentage >= 0 AND target_billable_percentage <= 100)",
            name="ck_staff_settings_target_range",
        ),
    )


def downgrade() -> None:
    op.drop_table("staff_settings")

    op.drop_index("ix_recoverability_uploads_org_date", table_name="recoverability_timesheet_uploads")
    op.drop_table("recoverability_timesheet_uploads")

    op.drop_index("ix_wip_timesheet_uploads_org", table_name="wip_timesheet_uploads")
    op.drop_table("wip_timesheet_uploads")

    op.drop_index("ix_timesheet_uploads_org_staff", table_name="timesheet_uploads")
    op.drop_index("ix_timesheet_uploads_org_date", table_name="timesheet_uploads")
    op.drop_table("timesheet_uploads")

    op.drop_index("ix_invoice_uploads_org_date", table_name="invoice_uploads")
    op.drop_table("invoice_uploads")
