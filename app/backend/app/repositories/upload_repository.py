"""Tenant-scoped page sources over the synced upload tables."""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.base import Base
from app.models.entities import (
    InvoiceUpload,
    RecoverabilityTimesheetUpload,
    StaffSetting,
    TimesheetUpload,
    WipTimesheetUpload,
)
from app.services.paged_fetcher import (
    DataFetchError,
    DateRangeFilter,
    EqualsFilter,
    FlagFilter,
    JobNameFilter,
    Row,
    RowFilter,
)

INVOICE_COLUMNS = ("date", "amount", "client_group", "account_manager", "job_manager")
TIMESHEET_COLUMNS = (
    "date",
    "staff",
    "time",
    "billable_amount",
    "billable",
    "capacity_reducing",
    "billed",
    "client_group",
    "account_manager",
    "job_manager",
    "job_name",
)
WIP_COLUMNS = ("date", "staff", "billable_amount", "client_group", "account_manager", "job_manager")
RECOVERABILITY_COLUMNS = (
    "date",
    "staff",
    "write_on_amount",
    "invoiced_amount",
    "client_group",
    "account_manager",
    "job_manager",
)
STAFF_SETTING_COLUMNS = (
    "staff_name",
    "default_daily_hours",
    "fte",
    "start_date",
    "end_date",
    "is_hidden",
    "report",
    "target_billable_percentage",
)


class UploadTableSource:
    """Reads selected columns of one upload table a page at a time."""

    def __init__(self, db: Session, model: type[Base], columns: Sequence[str]) -> None:
        self.db = db
        self.model = model
        self.columns = tuple(columns)
        self.table_name: str = model.__tablename__

    def _column(self, name: str):
        column = getattr(self.model, name, None)
        if column is None:
            raise ValueError(f"{self.table_name} has no column {name!r}.")
        return column

    def _conditions(self, row_filter: RowFilter) -> list[ColumnElement[bool]]:
        if isinstance(row_filter, DateRangeFilter):
            date_column = self._column("date")
            conditions: list[ColumnElement[bool]] = []
            if row_filter.start is not None:
                conditions.append(date_column >= row_filter.start)
            if row_filter.end is not None:
                conditions.append(date_column <= row_filter.end)
            return conditions
        if isinstance(row_filter, EqualsFilter):
            return [self._column(row_filter.field.value) == row_filter.value]
        if isinstance(row_filter, FlagFilter):
            return [self._column(row_filter.field.value).is_(row_filter.value)]
        if isinstance(row_filter, JobNameFilter):
            job_name = self._column("job_name")
            matches = job_name.icontains(row_filter.text, autoescape=True)
            if row_filter.negate:
                return [or_(job_name.is_(None), ~matches)]
            return [matches]
        raise TypeError(f"Unsupported row filter: {row_filter!r}")

    def fetch_page(
        self,
        tenant_id: UUID,
        filters: Sequence[RowFilter],
        offset: int,
        limit: int,
    ) -> list[Row]:
        conditions = [self.model.organization_id == tenant_id]
        for row_filter in filters:
            conditions.extend(self._conditions(row_filter))

        statement = (
            select(*(self._column(name) for name in self.columns))
            .where(and_(*conditions))
            .order_by(self.model.id.asc())
            .offset(offset)
            .limit(limit)
        )
        try:
            result = self.db.execute(statement).mappings().all()
        except SQLAlchemyError as exc:
            raise DataFetchError(self.table_name, str(exc)) from exc
        return [dict(row) for row in result]


class UploadRepository:
    """Factory for the page sources the report assemblers read from."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def invoices(self) -> UploadTableSource:
        return UploadTableSource(self.db, InvoiceUpload, INVOICE_COLUMNS)

    def timesheets(self) -> UploadTableSource:
        return UploadTableSource(self.db, TimesheetUpload, TIMESHEET_COLUMNS)

    def timesheet_staff(self) -> UploadTableSource:
        return UploadTableSource(self.db, TimesheetUpload, ("staff",))

    def wip_timesheets(self) -> UploadTableSource:
        return UploadTableSource(self.db, WipTimesheetUpload, WIP_COLUMNS)

    def recoverability_timesheets(self) -> UploadTableSource:
        return UploadTableSource(self.db, RecoverabilityTimesheetUpload, RECOVERABILITY_COLUMNS)

    def staff_settings(self) -> UploadTableSource:
        return UploadTableSource(self.db, StaffSetting, STAFF_SETTING_COLUMNS)
