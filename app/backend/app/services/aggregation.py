"""Aggregation engine shared by every report family.

Rows are plain mappings as returned by the upload table sources. Sums are
kept as exact ``Decimal`` values; rounding is left to the response layer.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from app.services.financial_year import FISCAL_MONTHS, FinancialYearWindow, fiscal_month_index
from app.services.time_values import (
    ZERO,
    clean_label,
    decode_time_value,
    parse_record_date,
    round_2dp,
    to_decimal,
)

UNCATEGORIZED = "Uncategorized"
DISBURSEMENT = "disbursement"

Row = Mapping[str, object]
ValueGetter = Callable[[Row], Decimal]
KeyGetter = Callable[[Row], str | None]

HUNDRED = Decimal("100")
CHANGE_EPSILON = Decimal("0.01")


# ---------- Value and key extractors ----------
def amount_of(field_name: str) -> ValueGetter:
    def getter(row: Row) -> Decimal:
        return to_decimal(row.get(field_name))

    return getter


def hours_of(field_name: str = "time") -> ValueGetter:
    def getter(row: Row) -> Decimal:
        return decode_time_value(row.get(field_name))

    return getter


def group_key(field_name: str, *, fallback: str = UNCATEGORIZED) -> KeyGetter:
    """Group by a categorical column, sending blank values to ``fallback``."""

    def getter(row: Row) -> str | None:
        return clean_label(row.get(field_name)) or fallback

    return getter


def staff_key(field_name: str = "staff") -> KeyGetter:
    """Group by staff name, dropping blank names and disbursement lines."""

    def getter(row: Row) -> str | None:
        name = clean_label(row.get(field_name))
        if not name or name.lower() == DISBURSEMENT:
            return None
        return name

    return getter


def total_of(rows: Iterable[Row], value: ValueGetter) -> Decimal:
    return sum((value(row) for row in rows), ZERO)


# ---------- Monthly series ----------
@dataclass(slots=True)
class MonthBucket:
    month: str
    current_year: Decimal = ZERO
    last_year: Decimal = ZERO


def monthly_totals(
    current_rows: Iterable[Row],
    last_rows: Iterable[Row],
    *,
    value: ValueGetter,
    current_window: FinancialYearWindow,
    last_window: FinancialYearWindow,
) -> list[MonthBucket]:
    """Sum ``value`` into twelve fiscal-ordered buckets for both periods.

    Rows dated outside their window, or without a usable date, are skipped.
    """

    buckets = [MonthBucket(month=label) for label in FISCAL_MONTHS]
    for row in current_rows:
        record_date = parse_record_date(row.get("date"))
        if record_date is None or not current_window.contains(record_date):
            continue
        buckets[fiscal_month_index(record_date.month)].current_year += value(row)
    for row in last_rows:
        record_date = parse_record_date(row.get("date"))
        if record_date is None or not last_window.contains(record_date):
            continue
        buckets[fiscal_month_index(record_date.month)].last_year += value(row)
    return buckets


# ---------- Mode selection ----------
class ModeTracker:
    """Per-group frequency of a companion value.

    Counts live in insertion-ordered dicts so a tie resolves to the value
    that was seen first.
    """

    def __init__(self) -> None:
        self._counts: dict[str, dict[str, int]] = {}

    def observe(self, group: str, value: object) -> None:
        label = clean_label(value)
        if not label:
            return
        counts = self._counts.setdefault(group, {})
        counts[label] = counts.get(label, 0) + 1

    def mode(self, group: str) -> str | None:
        best: str | None = None
        best_count = 0
        for label, count in self._counts.get(group, {}).items():
            if count > best_count:
                best, best_count = label, count
        return best


# ---------- Entity totals ----------
@dataclass(slots=True)
class EntityTotals:
    name: str
    current_year: Decimal = ZERO
    last_year: Decimal = ZERO
    current_secondary: Decimal = ZERO
    last_secondary: Decimal = ZERO
    modes: dict[str, str | None] = field(default_factory=dict)


def entity_totals(
    current_rows: Iterable[Row],
    last_rows: Iterable[Row],
    *,
    key: KeyGetter,
    value: ValueGetter,
    secondary: ValueGetter | None = None,
    companions: Mapping[str, str] | None = None,
) -> list[EntityTotals]:
    """Per-entity totals for two comparable periods.

    ``companions`` maps an output name to the column whose most common value
    is reported per entity (e.g. ``{"partner": "account_manager"}``). The
    result is sorted by current-period total, largest first.
    """

    companions = companions or {}
    trackers = {output: ModeTracker() for output in companions}
    groups: dict[str, EntityTotals] = {}

    for is_current, rows in ((True, current_rows), (False, last_rows)):
        for row in rows:
            name = key(row)
            if name is None:
                continue
            entity = groups.get(name)
            if entity is None:
                entity = groups[name] = EntityTotals(name=name)
            amount = value(row)
            extra = secondary(row) if secondary is not None else ZERO
            if is_current:
                entity.current_year += amount
                entity.current_secondary += extra
            else:
                entity.last_year += amount
                entity.last_secondary += extra
            for output, column in companions.items():
                trackers[output].observe(name, row.get(column))

    for entity in groups.values():
        entity.modes = {output: tracker.mode(entity.name) for output, tracker in trackers.items()}
    return sorted(groups.values(), key=lambda entity: entity.current_year, reverse=True)


def active_names(totals: Iterable[EntityTotals]) -> list[str]:
    """Names whose 2 dp current or prior total is non-zero, sorted."""

    return sorted(
        entity.name
        for entity in totals
        if round_2dp(entity.current_year) != 0 or round_2dp(entity.last_year) != 0
    )


def distinct_labels(rows: Iterable[Row], field_name: str) -> list[str]:
    labels = {clean_label(row.get(field_name)) for row in rows}
    labels.discard("")
    return sorted(labels)


# ---------- Aging ----------
@dataclass(slots=True)
class AgingBuckets:
    less_than_30: Decimal = ZERO
    days_30_to_60: Decimal = ZERO
    days_60_to_90: Decimal = ZERO
    days_90_to_120: Decimal = ZERO
    days_120_plus: Decimal = ZERO

    def add(self, age_days: int | None, amount: Decimal) -> None:
        # Future, missing and unparseable dates count as current work.
        if age_days is None or age_days < 30:
            self.less_than_30 += amount
        elif age_days < 60:
            self.days_30_to_60 += amount
        elif age_days < 90:
            self.days_60_to_90 += amount
        elif age_days < 120:
            self.days_90_to_120 += amount
        else:
            self.days_120_plus += amount

    @property
    def total(self) -> Decimal:
        return (
            self.less_than_30
            + self.days_30_to_60
            + self.days_60_to_90
            + self.days_90_to_120
            + self.days_120_plus
        )

    def items(self) -> tuple[tuple[str, Decimal], ...]:
        return (
            ("lessThan30", self.less_than_30),
            ("days30to60", self.days_30_to_60),
            ("days60to90", self.days_60_to_90),
            ("days90to120", self.days_90_to_120),
            ("days120Plus", self.days_120_plus),
        )


def age_in_days(value: object, today: date) -> int | None:
    record_date = parse_record_date(value)
    if record_date is None:
        return None
    return (today - record_date).days


def aging_totals(rows: Iterable[Row], *, value: ValueGetter, today: date) -> AgingBuckets:
    buckets = AgingBuckets()
    for row in rows:
        buckets.add(age_in_days(row.get("date"), today), value(row))
    return buckets


@dataclass(slots=True)
class GroupAging:
    name: str
    aging: AgingBuckets = field(default_factory=AgingBuckets)
    modes: dict[str, str | None] = field(default_factory=dict)

    @property
    def amount(self) -> Decimal:
        return self.aging.total


def aging_by_group(
    rows: Iterable[Row],
    *,
    key: KeyGetter,
    value: ValueGetter,
    today: date,
    companions: Mapping[str, str] | None = None,
) -> list[GroupAging]:
    """Aging breakdown per group; a group's amount is its bucket total."""

    companions = companions or {}
    trackers = {output: ModeTracker() for output in companions}
    groups: dict[str, GroupAging] = {}
    for row in rows:
        name = key(row)
        if name is None:
            continue
        group = groups.get(name)
        if group is None:
            group = groups[name] = GroupAging(name=name)
        group.aging.add(age_in_days(row.get("date"), today), value(row))
        for output, column in companions.items():
            trackers[output].observe(name, row.get(column))

    for group in groups.values():
        group.modes = {output: tracker.mode(group.name) for output, tracker in trackers.items()}
    return sorted(groups.values(), key=lambda group: group.amount, reverse=True)


# ---------- KPI arithmetic ----------
def percentage_change(current: Decimal, last: Decimal) -> Decimal | None:
    if abs(last) > CHANGE_EPSILON:
        return (current - last) / abs(last) * HUNDRED
    if abs(current) > CHANGE_EPSILON:
        return HUNDRED if current > 0 else -HUNDRED
    return None


def recovery_percentage(write_on: Decimal, invoiced: Decimal) -> Decimal:
    denominator = invoiced - write_on
    if denominator <= 0:
        return ZERO
    return (1 + write_on / denominator) * HUNDRED


def safe_ratio(numerator: Decimal, denominator: Decimal, *, scale: Decimal = Decimal("1")) -> Decimal:
    if denominator <= 0:
        return ZERO
    return numerator / denominator * scale


@dataclass(frozen=True, slots=True)
class StaffCapacity:
    name: str
    daily_hours: Decimal
    fte: Decimal
    start_date: date | None = None
    end_date: date | None = None


def weekdays_between(start: date, end: date) -> int:
    """Monday-to-Friday days in the inclusive range."""

    if end < start:
        return 0
    full_weeks, remainder = divmod((end - start).days + 1, 7)
    first = start.weekday()
    return full_weeks * 5 + sum(1 for offset in range(remainder) if (first + offset) % 7 < 5)


def standard_hours(staff: Sequence[StaffCapacity], start: date, end: date) -> Decimal:
    """Contracted hours for ``staff`` over the window, clipped to employment dates."""

    hours = ZERO
    for member in staff:
        member_start = max(start, member.start_date) if member.start_date else start
        member_end = min(end, member.end_date) if member.end_date else end
        weekdays = weekdays_between(member_start, member_end)
        if weekdays:
            hours += weekdays * member.daily_hours * member.fte
    return hours
