"""ORM entities for organizations and synced practice-management uploads."""

from __future__ import annotations

import enum
import uuid
import datetime as dt
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class MemberRole(str, enum.Enum):
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_login_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)


class OrganizationMember(Base):
    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_organization_members_org_user"),
        Index("ix_organization_members_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    role: Mapped[MemberRole] = mapped_column(
        SQLEnum(
            MemberRole,
            name="member_role",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=MemberRole.MEMBER,
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)


class InvoiceUpload(Base):
    __tablename__ = "invoice_uploads"
    __table_args__ = (Index("ix_invoice_uploads_org_date", "organization_id", "date"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)


class TimesheetUpload(Base):
    __tablename__ = "timesheet_uploads"
    __table_args__ = (
        Index("ix_timesheet_uploads_org_date", "organization_id", "date"),
        Index("ix_timesheet_uploads_org_staff", "organization_id", "staff"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    staff: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Packed HHMM-style value, see app.services.time_values.decode_time_value.
    time: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    billable_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    capacity_reducing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    billed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)


class WipTimesheetUpload(Base):
    __tablename__ = "wip_timesheet_uploads"
    __table_args__ = (Index("ix_wip_timesheet_uploads_org", "organization_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    staff: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billable_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)


class RecoverabilityTimesheetUpload(Base):
    __tablename__ = "recoverability_timesheet_uploads"
    __table_args__ = (Index("ix_recoverability_uploads_org_date", "organization_id", "date"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    staff: Mapped[str | None] = mapped_column(String(255), nullable=True)
    write_on_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    invoiced_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=dt.datetime.utcnow)


class StaffSetting(Base):
    __tablename__ = "staff_settings"
    __table_args__ = (UniqueConstraint("organization_id", "staff_name", name="uq_staff_settings_org_staff"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    staff_name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_daily_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    fte: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True)
    start_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    report: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    target_billable_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
