"""Report assemblers for revenue, billable, productivity, recoverability and WIP."""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from openpyxl import Workbook
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.repositories.upload_repository import UploadRepository, UploadTableSource
from app.services.aggregation import (
    HUNDRED,
    AgingBuckets,
    EntityTotals,
    MonthBucket,
    StaffCapacity,
    ValueGetter,
    active_names,
    aging_by_group,
    aging_totals,
    amount_of,
    distinct_labels,
    entity_totals,
    group_key,
    hours_of,
    monthly_totals,
    percentage_change,
    recovery_percentage,
    safe_ratio,
    staff_key,
    standard_hours,
    total_of,
)
from app.services.financial_year import (
    FISCAL_MONTHS,
    FinancialYearWindow,
    comparison_windows,
    parse_reference_date,
)
from app.services.paged_fetcher import (
    CategoryField,
    DataFetchError,
    DateRangeFilter,
    EqualsFilter,
    FlagField,
    FlagFilter,
    PagedTableFetcher,
    Row,
    RowFilter,
)
from app.services.report_filters import parse_filter_payload, with_staff
from app.services.time_values import ZERO, clean_label, parse_record_date, round_1dp, round_2dp, round_whole, to_decimal

logger = logging.getLogger(__name__)

CURRENT_YEAR_LABEL = "Current Year"
LAST_YEAR_LABEL = "Last Year"

CLIENT_GROUP_COMPANIONS = {"partner": "account_manager", "clientManager": "job_manager"}

BILLABLE_ONLY = FlagFilter(FlagField.BILLABLE)
CAPACITY_REDUCING_ONLY = FlagFilter(FlagField.CAPACITY_REDUCING)


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def _monthly_series(buckets: Sequence[MonthBucket]) -> list[dict[str, object]]:
    return [
        {
            "month": bucket.month,
            CURRENT_YEAR_LABEL: round_2dp(bucket.current_year),
            LAST_YEAR_LABEL: round_2dp(bucket.last_year),
        }
        for bucket in buckets
    ]


def _client_group_rows(totals: Sequence[EntityTotals], *, with_amounts: bool = False) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for entity in totals:
        row: dict[str, object] = {
            "clientGroup": entity.name,
            "currentYear": round_2dp(entity.current_year),
            "lastYear": round_2dp(entity.last_year),
        }
        if with_amounts:
            row["currentYearAmount"] = round_2dp(entity.current_secondary)
            row["lastYearAmount"] = round_2dp(entity.last_secondary)
        row["partner"] = entity.modes.get("partner")
        row["clientManager"] = entity.modes.get("clientManager")
        rows.append(row)
    return rows


def _partner_series(totals: Sequence[EntityTotals]) -> list[dict[str, object]]:
    return [
        {
            "partner": entity.name,
            CURRENT_YEAR_LABEL: round_2dp(entity.current_year),
            LAST_YEAR_LABEL: round_2dp(entity.last_year),
        }
        for entity in totals
    ]


def _aging_dict(aging: AgingBuckets) -> dict[str, int]:
    return {name: round_whole(amount) for name, amount in aging.items()}


def _change(current: Decimal, last: Decimal) -> float | None:
    change = percentage_change(current, last)
    return round_1dp(change) if change is not None else None


def _by_staff(rows: Sequence[Row], value: ValueGetter) -> dict[str, Decimal]:
    return {entity.name: entity.current_year for entity in entity_totals(rows, (), key=staff_key(), value=value)}


def _manager_filters(partner: str | None, client_manager: str | None) -> list[RowFilter]:
    filters: list[RowFilter] = []
    if partner:
        filters.append(EqualsFilter(CategoryField.ACCOUNT_MANAGER, partner))
    if client_manager:
        filters.append(EqualsFilter(CategoryField.JOB_MANAGER, client_manager))
    return filters


class ReportingService:
    """Read-only report assembly over the tenant's upload tables."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repository = UploadRepository(db)
        self.settings = get_settings()

    # ---------- Fetching ----------
    def _fetch(self, source: UploadTableSource, tenant_id: UUID, filters: Sequence[RowFilter] = ()) -> list[Row]:
        fetcher = PagedTableFetcher(source, page_size=self.settings.report_page_size)
        try:
            return fetcher.fetch_all(tenant_id, filters)
        except DataFetchError as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"error": "Failed to fetch data", "details": exc.message},
            ) from exc

    def _period_rows(
        self,
        source: UploadTableSource,
        tenant_id: UUID,
        current: DateRangeFilter,
        last: DateRangeFilter,
        filters: Sequence[RowFilter] = (),
    ) -> tuple[list[Row], list[Row]]:
        current_rows = self._fetch(source, tenant_id, [current, *filters])
        last_rows = self._fetch(source, tenant_id, [last, *filters])
        logger.debug(
            "%s: %d current rows (%s..%s), %d prior rows (%s..%s)",
            source.table_name,
            len(current_rows),
            current.start,
            current.end,
            len(last_rows),
            last.start,
            last.end,
        )
        return current_rows, last_rows

    @staticmethod
    def _window_range(window: FinancialYearWindow) -> DateRangeFilter:
        return DateRangeFilter(window.start_date, window.end_date)

    def _period_ranges(
        self,
        current: FinancialYearWindow,
        last: FinancialYearWindow,
        month: str | None,
    ) -> tuple[DateRangeFilter, DateRangeFilter]:
        if not month:
            return self._window_range(current), self._window_range(last)
        current_month = current.month_range(month)
        last_month = last.month_range(month)
        if current_month is None or last_month is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Unknown month: {month}.",
            )
        return DateRangeFilter(*current_month), DateRangeFilter(*last_month)

    # ---------- Revenue ----------
    def revenue_monthly(self, *, tenant_id: UUID, today: date) -> list[dict[str, object]]:
        current, last = comparison_windows(today)
        current_rows, last_rows = self._period_rows(
            self.repository.invoices(), tenant_id, self._window_range(current), self._window_range(last)
        )
        buckets = monthly_totals(
            current_rows,
            last_rows,
            value=amount_of("amount"),
            current_window=current,
            last_window=last,
        )
        return _monthly_series(buckets)

    def revenue_client_groups(self, *, tenant_id: UUID, today: date) -> list[dict[str, object]]:
        current, last = comparison_windows(today)
        current_rows, last_rows = self._period_rows(
            self.repository.invoices(), tenant_id, self._window_range(current), self._window_range(last)
        )
        totals = entity_totals(
            current_rows,
            last_rows,
            key=group_key("client_group"),
            value=amount_of("amount"),
            companions=CLIENT_GROUP_COMPANIONS,
        )
        return _client_group_rows(totals)

    # ---------- Billable ----------
    def billable_monthly(
        self,
        *,
        tenant_id: UUID,
        today: date,
        staff: str | None = None,
    ) -> list[dict[str, object]]:
        current, last = comparison_windows(today)
        current_rows, last_rows = self._period_rows(
            self.repository.timesheets(),
            tenant_id,
            self._window_range(current),
            self._window_range(last),
            with_staff([], staff),
        )
        buckets = monthly_totals(
            current_rows,
            last_rows,
            value=amount_of("billable_amount"),
            current_window=current,
            last_window=last,
        )
        return _monthly_series(buckets)

    def billable_client_groups(
        self,
        *,
        tenant_id: UUID,
        today: date,
        staff: str | None = None,
        month: str | None = None,
        filters: str | None = None,
    ) -> list[dict[str, object]]:
        current, last = comparison_windows(today)
        current_range, last_range = self._period_ranges(current, last, month)
        row_filters = with_staff([BILLABLE_ONLY, *parse_filter_payload(filters)], staff)
        current_rows, last_rows = self._period_rows(
            self.repository.timesheets(), tenant_id, current_range, last_range, row_filters
        )
        totals = entity_totals(
            current_rows,
            last_rows,
            key=group_key("client_group"),
            value=amount_of("billable_amount"),
            companions=CLIENT_GROUP_COMPANIONS,
        )
        return _client_group_rows(totals)

    def billable_staff(self, *, tenant_id: UUID, today: date) -> list[str]:
        current, last = comparison_windows(today)
        current_rows, last_rows = self._period_rows(
            self.repository.timesheets(), tenant_id, self._window_range(current), self._window_range(last)
        )
        totals = entity_totals(current_rows, last_rows, key=staff_key(), value=amount_of("billable_amount"))
        return active_names(totals)

    def billable_partners(self, *, tenant_id: UUID) -> list[str]:
        return distinct_labels(self._fetch(self.repository.timesheets(), tenant_id), "account_manager")

    def billable_client_managers(self, *, tenant_id: UUID) -> list[str]:
        return distinct_labels(self._fetch(self.repository.timesheets(), tenant_id), "job_manager")

    def billable_filter_options(self, *, tenant_id: UUID) -> dict[str, list[str]]:
        rows = self._fetch(self.repository.timesheets(), tenant_id)
        return {
            "clientGroups": distinct_labels(rows, "client_group"),
            "accountManagers": distinct_labels(rows, "account_manager"),
            "jobManagers": distinct_labels(rows, "job_manager"),
        }

    # ---------- Productivity ----------
    def _hours_monthly(
        self,
        *,
        tenant_id: UUID,
        today: date,
        flag: FlagFilter,
        staff: str | None,
        as_of: str | None,
    ) -> list[dict[str, object]]:
        reference = parse_reference_date(as_of, today=today, strict=False)
        current, last = comparison_windows(reference, same_point_in_time=True)
        current_rows, last_rows = self._period_rows(
            self.repository.timesheets(),
            tenant_id,
            self._window_range(current),
            self._window_range(last),
            with_staff([flag], staff),
        )
        buckets = monthly_totals(
            current_rows,
            last_rows,
            value=hours_of(),
            current_window=current,
            last_window=last,
        )
        return _monthly_series(buckets)

    def productivity_monthly(
        self,
        *,
        tenant_id: UUID,
        today: date,
        staff: str | None = None,
        as_of: str | None = None,
    ) -> list[dict[str, object]]:
        return self._hours_monthly(tenant_id=tenant_id, today=today, flag=BILLABLE_ONLY, staff=staff, as_of=as_of)

    def capacity_reducing_monthly(
        self,
        *,
        tenant_id: UUID,
        today: date,
        staff: str | None = None,
        as_of: str | None = None,
    ) -> list[dict[str, object]]:
        return self._hours_monthly(
            tenant_id=tenant_id,
            today=today,
            flag=CAPACITY_REDUCING_ONLY,
            staff=staff,
            as_of=as_of,
        )

    def productivity_staff(self, *, tenant_id: UUID, today: date) -> list[str]:
        current, last = comparison_windows(today)
        current_rows, last_rows = self._period_rows(
            self.repository.timesheets(),
            tenant_id,
            self._window_range(current),
            self._window_range(last),
            [BILLABLE_ONLY],
        )
        totals = entity_totals(current_rows, last_rows, key=staff_key(), value=hours_of())
        return active_names(totals)

    def productivity_client_groups(
        self,
        *,
        tenant_id: UUID,
        today: date,
        staff: str | None = None,
        month: str | None = None,
        filters: str | None = None,
        as_of: str | None = None,
    ) -> list[dict[str, object]]:
        reference = parse_reference_date(as_of, today=today, strict=False)
        current, last = comparison_windows(reference, same_point_in_time=True)
        current_range, last_range = self._period_ranges(current, last, month)
        row_filters = with_staff([BILLABLE_ONLY, *parse_filter_payload(filters)], staff)
        current_rows, last_rows = self._period_rows(
            self.repository.timesheets(), tenant_id, current_range, last_range, row_filters
        )
        totals = entity_totals(
            current_rows,
            last_rows,
            key=group_key("client_group"),
            value=hours_of(),
            secondary=amount_of("billable_amount"),
            companions=CLIENT_GROUP_COMPANIONS,
        )
        return _client_group_rows(totals, with_amounts=True)

    def _staff_capacity(self, name: str, setting: Row) -> StaffCapacity:
        daily_hours = to_decimal(setting.get("default_daily_hours"))
        fte = to_decimal(setting.get("fte"))
        return StaffCapacity(
            name=name,
            daily_hours=daily_hours if daily_hours > 0 else self.settings.staff_default_daily_hours,
            fte=fte if fte > 0 else Decimal("1"),
            start_date=parse_record_date(setting.get("start_date")),
            end_date=parse_record_date(setting.get("end_date")),
        )

    @staticmethod
    def _visible_staff(settings: Sequence[Row]) -> dict[str, Row]:
        """Settings rows of staff that are neither hidden nor excluded from reporting."""

        visible: dict[str, Row] = {}
        for setting in settings:
            name = clean_label(setting.get("staff_name"))
            if name and not setting.get("is_hidden") and setting.get("report") is not False:
                visible[name] = setting
        return visible

    def productivity_kpi(
        self,
        *,
        tenant_id: UUID,
        today: date,
        staff: str | None = None,
        as_of: str | None = None,
    ) -> dict[str, float]:
        reference = parse_reference_date(as_of, today=today, strict=True)
        current, last = comparison_windows(reference, same_point_in_time=True)
        current_range, last_range = self._window_range(current), self._window_range(last)
        timesheets = self.repository.timesheets()

        current_billable, last_billable = self._period_rows(
            timesheets, tenant_id, current_range, last_range, with_staff([BILLABLE_ONLY], staff)
        )
        current_reducing, last_reducing = self._period_rows(
            timesheets, tenant_id, current_range, last_range, with_staff([CAPACITY_REDUCING_ONLY], staff)
        )

        visible = self._visible_staff(self._fetch(self.repository.staff_settings(), tenant_id))
        if staff:
            selected = [staff] if staff in visible else []
        else:
            hours_by_staff = entity_totals(current_billable, last_billable, key=staff_key(), value=hours_of())
            selected = [name for name in active_names(hours_by_staff) if name in visible]
        capacities = [self._staff_capacity(name, visible[name]) for name in selected]

        hours = hours_of()
        billable_amount = amount_of("billable_amount")
        current_hours = total_of(current_billable, hours)
        last_hours = total_of(last_billable, hours)
        current_available = max(
            ZERO,
            standard_hours(capacities, current.start_date, current.end_date) - total_of(current_reducing, hours),
        )
        last_available = max(
            ZERO,
            standard_hours(capacities, last.start_date, last.end_date) - total_of(last_reducing, hours),
        )

        # Unweighted mean of the targets set on visible staff.
        targets: list[Decimal] = []
        for name, setting in visible.items():
            if staff and name != staff:
                continue
            raw_target = setting.get("target_billable_percentage")
            if raw_target is None:
                continue
            target = to_decimal(raw_target)
            if ZERO <= target <= HUNDRED:
                targets.append(target)
        target_percentage = sum(targets, ZERO) / len(targets) if targets else ZERO

        return {
            "ytdBillablePercentage": round_1dp(safe_ratio(current_hours, current_available, scale=HUNDRED)),
            "lastYearBillablePercentage": round_1dp(safe_ratio(last_hours, last_available, scale=HUNDRED)),
            "targetBillablePercentage": round_1dp(target_percentage),
            "ytdAverageRate": round_2dp(safe_ratio(total_of(current_billable, billable_amount), current_hours)),
            "lastYearAverageRate": round_2dp(safe_ratio(total_of(last_billable, billable_amount), last_hours)),
        }

    def productivity_standard_hours_monthly(
        self,
        *,
        tenant_id: UUID,
        today: date,
        staff: str | None = None,
    ) -> list[dict[str, object]]:
        """Contracted hours per fiscal month for both financial years.

        Staff who appear on timesheets without a settings row count at the
        default daily hours and full time.
        """

        current, last = comparison_windows(today)
        settings_rows = self._fetch(self.repository.staff_settings(), tenant_id)
        visible = self._visible_staff(settings_rows)
        configured = {clean_label(setting.get("staff_name")) for setting in settings_rows}

        capacities = {name: self._staff_capacity(name, setting) for name, setting in visible.items()}
        staff_name = staff_key()
        for row in self._fetch(self.repository.timesheet_staff(), tenant_id):
            name = staff_name(row)
            if name is not None and name not in configured and name not in capacities:
                capacities[name] = self._staff_capacity(name, {})

        if staff:
            selected = [capacities[staff]] if staff in capacities else []
        else:
            selected = list(capacities.values())

        buckets: list[MonthBucket] = []
        for month in FISCAL_MONTHS:
            current_start, current_end = current.month_range(month)
            last_start, last_end = last.month_range(month)
            buckets.append(
                MonthBucket(
                    month=month,
                    current_year=standard_hours(selected, current_start, current_end),
                    last_year=standard_hours(selected, last_start, last_end),
                )
            )
        return _monthly_series(buckets)

    # ---------- Recoverability ----------
    def recoverability_monthly(
        self,
        *,
        tenant_id: UUID,
        today: date,
        partner: str | None = None,
        client_manager: str | None = None,
    ) -> list[dict[str, object]]:
        current, last = comparison_windows(today)
        current_rows, last_rows = self._period_rows(
            self.repository.recoverability_timesheets(),
            tenant_id,
            self._window_range(current),
            self._window_range(last),
            _manager_filters(partner, client_manager),
        )
        buckets = monthly_totals(
            current_rows,
            last_rows,
            value=amount_of("write_on_amount"),
            current_window=current,
            last_window=last,
        )
        return _monthly_series(buckets)

    def recoverability_client_groups(
        self,
        *,
        tenant_id: UUID,
        today: date,
        month: str | None = None,
        filters: str | None = None,
    ) -> list[dict[str, object]]:
        current, last = comparison_windows(today)
        current_range, last_range = self._period_ranges(current, last, month)
        current_rows, last_rows = self._period_rows(
            self.repository.recoverability_timesheets(),
            tenant_id,
            current_range,
            last_range,
            parse_filter_payload(filters, allow_job_name=False),
        )
        totals = entity_totals(
            current_rows,
            last_rows,
            key=group_key("client_group"),
            value=amount_of("write_on_amount"),
            companions=CLIENT_GROUP_COMPANIONS,
        )
        return _client_group_rows(totals)

    def recoverability_kpi(
        self,
        *,
        tenant_id: UUID,
        today: date,
        filters: str | None = None,
        as_of: str | None = None,
    ) -> dict[str, object]:
        reference = parse_reference_date(as_of, today=today, strict=True)
        current, last = comparison_windows(reference, same_point_in_time=True)
        current_rows, last_rows = self._period_rows(
            self.repository.recoverability_timesheets(),
            tenant_id,
            self._window_range(current),
            self._window_range(last),
            parse_filter_payload(filters, allow_job_name=False),
        )
        write_on = amount_of("write_on_amount")
        invoiced = amount_of("invoiced_amount")
        current_write_on = total_of(current_rows, write_on)
        last_write_on = total_of(last_rows, write_on)

        return {
            "currentYearAmount": round_2dp(current_write_on),
            "lastYearAmount": round_2dp(last_write_on),
            "percentageChange": _change(current_write_on, last_write_on),
            "currentYearPercentage": round_1dp(recovery_percentage(current_write_on, total_of(current_rows, invoiced))),
            "lastYearPercentage": round_1dp(recovery_percentage(last_write_on, total_of(last_rows, invoiced))),
            "targetPercentage": round_1dp(self.settings.recoverability_target_percentage),
        }

    def recoverability_filter_options(self, *, tenant_id: UUID) -> dict[str, list[str]]:
        rows = self._fetch(self.repository.recoverability_timesheets(), tenant_id)
        return {
            "clientGroups": distinct_labels(rows, "client_group"),
            "accountManagers": distinct_labels(rows, "account_manager"),
            "jobManagers": distinct_labels(rows, "job_manager"),
        }

    # ---------- Work in progress ----------
    def wip_aging_summary(
        self,
        *,
        tenant_id: UUID,
        today: date,
        partner: str | None = None,
        client_manager: str | None = None,
    ) -> dict[str, object]:
        rows = self._fetch(self.repository.wip_timesheets(), tenant_id, _manager_filters(partner, client_manager))
        aging = aging_totals(rows, value=amount_of("billable_amount"), today=today)
        total = aging.total

        summary: dict[str, object] = _aging_dict(aging)
        summary["total"] = round_whole(total)
        summary["percentages"] = {
            name: round_2dp(safe_ratio(amount, total, scale=HUNDRED)) for name, amount in aging.items()
        }
        return summary

    def wip_client_groups(
        self,
        *,
        tenant_id: UUID,
        today: date,
        partner: str | None = None,
        client_manager: str | None = None,
    ) -> list[dict[str, object]]:
        rows = self._fetch(self.repository.wip_timesheets(), tenant_id, _manager_filters(partner, client_manager))
        groups = aging_by_group(
            rows,
            key=group_key("client_group"),
            value=amount_of("billable_amount"),
            today=today,
            companions=CLIENT_GROUP_COMPANIONS,
        )
        return [
            {
                "clientGroup": group.name,
                "amount": round_whole(group.amount),
                "partner": group.modes.get("partner"),
                "clientManager": group.modes.get("clientManager"),
                "aging": _aging_dict(group.aging),
            }
            for group in groups
        ]

    def _wip_by(
        self,
        *,
        tenant_id: UUID,
        column: str,
        label: str,
        partner: str | None,
        client_manager: str | None,
    ) -> list[dict[str, object]]:
        rows = self._fetch(self.repository.wip_timesheets(), tenant_id, _manager_filters(partner, client_manager))
        totals = entity_totals(rows, (), key=group_key(column), value=amount_of("billable_amount"))
        return [{label: entity.name, "amount": round_whole(entity.current_year)} for entity in totals]

    def wip_by_client_manager(
        self,
        *,
        tenant_id: UUID,
        partner: str | None = None,
        client_manager: str | None = None,
    ) -> list[dict[str, object]]:
        return self._wip_by(
            tenant_id=tenant_id,
            column="job_manager",
            label="clientManager",
            partner=partner,
            client_manager=client_manager,
        )

    def wip_by_partner(
        self,
        *,
        tenant_id: UUID,
        partner: str | None = None,
        client_manager: str | None = None,
    ) -> list[dict[str, object]]:
        return self._wip_by(
            tenant_id=tenant_id,
            column="account_manager",
            label="partner",
            partner=partner,
            client_manager=client_manager,
        )

    # ---------- Dashboard ----------
    def dashboard_kpi(self, *, tenant_id: UUID, today: date, as_of: str | None = None) -> dict[str, object]:
        reference = parse_reference_date(as_of, today=today, strict=True)
        current, last = comparison_windows(reference, same_point_in_time=True)
        current_range, last_range = self._window_range(current), self._window_range(last)

        current_invoices, last_invoices = self._period_rows(
            self.repository.invoices(), tenant_id, current_range, last_range
        )
        current_timesheets, last_timesheets = self._period_rows(
            self.repository.timesheets(), tenant_id, current_range, last_range
        )
        wip_rows = self._fetch(self.repository.wip_timesheets(), tenant_id)

        amount = amount_of("amount")
        billable_amount = amount_of("billable_amount")
        current_revenue = total_of(current_invoices, amount)
        last_revenue = total_of(last_invoices, amount)
        current_billable = total_of(current_timesheets, billable_amount)
        last_billable = total_of(last_timesheets, billable_amount)

        return {
            "revenue": {
                "currentYear": round_2dp(current_revenue),
                "lastYear": round_2dp(last_revenue),
                "percentageChange": _change(current_revenue, last_revenue),
            },
            "billableAmount": {
                "currentYear": round_2dp(current_billable),
                "lastYear": round_2dp(last_billable),
                "percentageChange": _change(current_billable, last_billable),
            },
            "wipAmount": round_2dp(total_of(wip_rows, billable_amount)),
        }

    def dashboard_revenue_by_partner(
        self,
        *,
        tenant_id: UUID,
        today: date,
        as_of: str | None = None,
    ) -> list[dict[str, object]]:
        reference = parse_reference_date(as_of, today=today, strict=False)
        current, last = comparison_windows(reference, same_point_in_time=True)
        current_rows, last_rows = self._period_rows(
            self.repository.invoices(), tenant_id, self._window_range(current), self._window_range(last)
        )
        totals = entity_totals(current_rows, last_rows, key=group_key("account_manager"), value=amount_of("amount"))
        return _partner_series(totals)

    def dashboard_billable_by_partner(
        self,
        *,
        tenant_id: UUID,
        today: date,
        as_of: str | None = None,
    ) -> list[dict[str, object]]:
        reference = parse_reference_date(as_of, today=today, strict=False)
        current, last = comparison_windows(reference, same_point_in_time=True)
        current_rows, last_rows = self._period_rows(
            self.repository.timesheets(), tenant_id, self._window_range(current), self._window_range(last)
        )
        totals = entity_totals(
            current_rows,
            last_rows,
            key=group_key("account_manager"),
            value=amount_of("billable_amount"),
        )
        return _partner_series(totals)

    def dashboard_staff_performance(
        self,
        *,
        tenant_id: UUID,
        today: date,
        filters: str | None = None,
        as_of: str | None = None,
    ) -> dict[str, object]:
        """Year-to-date billable and recoverability figures per staff member.

        Totals are taken over the staff counted toward standard hours, the
        same population as the productivity KPI.
        """

        reference = parse_reference_date(as_of, today=today, strict=True)
        current, _ = comparison_windows(reference, same_point_in_time=True)
        full_current, full_last = comparison_windows(reference)
        current_range = self._window_range(current)

        staff_filter: str | None = None
        row_filters: list[RowFilter] = []
        for item in parse_filter_payload(filters):
            if isinstance(item, EqualsFilter) and item.field is CategoryField.STAFF:
                staff_filter = item.value
            else:
                row_filters.append(item)

        timesheets = self.repository.timesheets()
        amounts = _by_staff(
            self._fetch(timesheets, tenant_id, [current_range, *row_filters]), amount_of("billable_amount")
        )
        hours = _by_staff(self._fetch(timesheets, tenant_id, [current_range, BILLABLE_ONLY, *row_filters]), hours_of())
        reducing = _by_staff(self._fetch(timesheets, tenant_id, [current_range, CAPACITY_REDUCING_ONLY]), hours_of())
        recoverability_rows = self._fetch(self.repository.recoverability_timesheets(), tenant_id, [current_range])
        write_on = _by_staff(recoverability_rows, amount_of("write_on_amount"))
        invoiced = _by_staff(recoverability_rows, amount_of("invoiced_amount"))

        settings_rows = self._fetch(self.repository.staff_settings(), tenant_id)
        visible = self._visible_staff(settings_rows)
        if staff_filter:
            eligible = {staff_filter}
        else:
            yearly_rows = self._period_rows(
                timesheets,
                tenant_id,
                self._window_range(full_current),
                self._window_range(full_last),
                [BILLABLE_ONLY],
            )
            yearly_hours = entity_totals(*yearly_rows, key=staff_key(), value=hours_of())
            eligible = {entity.name for entity in yearly_hours if entity.current_year > 0 or entity.last_year > 0}
        standard = {
            name: standard_hours([self._staff_capacity(name, setting)], current.start_date, current.end_date)
            for name, setting in visible.items()
            if name in eligible
        }

        targets = {
            clean_label(setting.get("staff_name")): setting.get("target_billable_percentage")
            for setting in settings_rows
        }
        recovery_target = self.settings.recoverability_target_percentage

        def performance(
            amount: Decimal,
            billable_hours: Decimal,
            available: Decimal,
            recovered: Decimal,
            billed: Decimal,
            target: Decimal | None,
        ) -> dict[str, object]:
            billable_percentage = safe_ratio(billable_hours, available, scale=HUNDRED)
            recovery = recovery_percentage(recovered, billed)
            return {
                "billableAmount": round_2dp(amount),
                "billablePercentage": round_1dp(billable_percentage),
                "targetBillablePercentage": round_1dp(target) if target is not None else None,
                "billableVariance": round_1dp(billable_percentage - target) if target is not None else None,
                "recoverabilityAmount": round_2dp(recovered),
                "recoverabilityPercentage": round_1dp(recovery),
                "targetRecoverabilityPercentage": round_1dp(recovery_target),
                "recoverabilityVariance": round_1dp(recovery - recovery_target),
                "billableHours": round_1dp(billable_hours),
                "averageHourlyRate": round_2dp(safe_ratio(amount, billable_hours)),
            }

        rows: list[dict[str, object]] = []
        for name in sorted(set(amounts) | set(standard) | set(write_on)):
            if staff_filter and name != staff_filter:
                continue
            amount = amounts.get(name, ZERO)
            if round_2dp(amount) <= 0:
                continue
            raw_target = targets.get(name)
            rows.append(
                {
                    "staff": name,
                    "currentYear": performance(
                        amount,
                        hours.get(name, ZERO),
                        max(ZERO, standard.get(name, ZERO) - reducing.get(name, ZERO)),
                        write_on.get(name, ZERO),
                        invoiced.get(name, ZERO),
                        to_decimal(raw_target) if raw_target is not None else None,
                    ),
                }
            )

        listed = [row["staff"] for row in rows]
        totals = performance(
            sum((amounts.get(name, ZERO) for name in standard), ZERO),
            sum((hours.get(name, ZERO) for name in standard), ZERO),
            max(ZERO, sum(standard.values(), ZERO) - sum((reducing.get(name, ZERO) for name in standard), ZERO)),
            sum((write_on.get(name, ZERO) for name in standard), ZERO),
            sum((invoiced.get(name, ZERO) for name in standard), ZERO),
            None,
        )
        # Amount columns follow the listed rows so they add up on screen.
        totals["billableAmount"] = round_2dp(sum((amounts[name] for name in listed), ZERO))
        totals["recoverabilityAmount"] = round_2dp(sum((write_on.get(name, ZERO) for name in listed), ZERO))
        return {"data": rows, "totals": {"currentYear": totals}}

    # ---------- Exports ----------
    @staticmethod
    def _flatten_report_rows(report_rows: list[dict[str, object]]) -> list[dict[str, object]]:
        flat_rows: list[dict[str, object]] = []
        for row in report_rows:
            record: dict[str, object] = {}
            for field, value in row.items():
                if isinstance(value, dict):
                    for nested_field, nested_value in value.items():
                        record[f"{field}.{nested_field}"] = "" if nested_value is None else nested_value
                else:
                    record[field] = "" if value is None else value
            flat_rows.append(record)
        return flat_rows

    def export_report(
        self,
        *,
        tenant_id: UUID,
        today: date,
        report_key: str,
        format_name: str,
    ) -> ExportFilePayload:
        normalized_key = report_key.strip().lower()
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"csv", "xlsx"}:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )

        report_dispatch: dict[str, Callable[..., list[dict[str, object]]]] = {
            "revenue-monthly": self.revenue_monthly,
            "revenue-client-groups": self.revenue_client_groups,
            "billable-monthly": self.billable_monthly,
            "billable-client-groups": self.billable_client_groups,
            "productivity-monthly": self.productivity_monthly,
            "productivity-client-groups": self.productivity_client_groups,
            "productivity-standard-hours-monthly": self.productivity_standard_hours_monthly,
            "recoverability-monthly": self.recoverability_monthly,
            "recoverability-client-groups": self.recoverability_client_groups,
            "wip-client-groups": self.wip_client_groups,
        }
        report_func = report_dispatch.get(normalized_key)
        if report_func is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Unknown report_key for export.",
            )

        flattened = self._flatten_report_rows(report_func(tenant_id=tenant_id, today=today))
        fieldnames = list(dict.fromkeys(field for row in flattened for field in row))
        base_filename = f"{normalized_key}-{today.isoformat()}"

        if normalized_format == "csv":
            csv_bytes = b""
            if fieldnames:
                sio = io.StringIO()
                writer = csv.DictWriter(sio, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(flattened)
                csv_bytes = sio.getvalue().encode("utf-8")
            return ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=f"{base_filename}.csv",
                content=csv_bytes,
            )

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "report"
        if fieldnames:
            sheet.append(fieldnames)
            for row in flattened:
                sheet.append([row.get(column, "") for column in fieldnames])

        output = io.BytesIO()
        workbook.save(output)
        return ExportFilePayload(
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=f"{base_filename}.xlsx",
            content=output.getvalue(),
        )
