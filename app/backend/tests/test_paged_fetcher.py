from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from app.models.entities import Organization, TimesheetUpload
from app.repositories.upload_repository import UploadRepository
from app.services.paged_fetcher import (
    CategoryField,
    DataFetchError,
    DateRangeFilter,
    EqualsFilter,
    FlagField,
    FlagFilter,
    JobNameFilter,
    PagedTableFetcher,
    RowFilter,
)


class FakePageSource:
    table_name = "fake_rows"

    def __init__(self, page_sizes: list[int], *, fail_on_call: int | None = None) -> None:
        self.page_sizes = page_sizes
        self.fail_on_call = fail_on_call
        self.calls: list[tuple[int, int]] = []

    def fetch_page(self, tenant_id, filters: Sequence[RowFilter], offset: int, limit: int):
        self.calls.append((offset, limit))
        call_number = len(self.calls)
        if self.fail_on_call == call_number:
            raise DataFetchError(self.table_name, "connection reset")
        size = self.page_sizes[call_number - 1]
        return [{"offset": offset + index} for index in range(size)]


def test_fetch_all_reads_until_short_page() -> None:
    source = FakePageSource([1000, 1000, 400])

    rows = PagedTableFetcher(source).fetch_all(uuid.uuid4())

    assert len(rows) == 2400
    assert source.calls == [(0, 1000), (1000, 1000), (2000, 1000)]
    assert rows[-1] == {"offset": 2399}


def test_fetch_all_stops_on_empty_page_after_full_page() -> None:
    source = FakePageSource([1000, 0])

    rows = PagedTableFetcher(source).fetch_all(uuid.uuid4())

    assert len(rows) == 1000
    assert len(source.calls) == 2


def test_fetch_all_aborts_whole_fetch_on_page_error() -> None:
    source = FakePageSource([1000, 1000, 400], fail_on_call=2)

    with pytest.raises(DataFetchError) as exc_info:
        PagedTableFetcher(source).fetch_all(uuid.uuid4())

    assert exc_info.value.table == "fake_rows"
    assert str(exc_info.value) == "Failed to fetch fake_rows: connection reset"
    assert len(source.calls) == 2


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        PagedTableFetcher(FakePageSource([]), page_size=0)


def _add_timesheet(db: Session, organization: Organization, **values) -> None:
    db.add(TimesheetUpload(organization_id=organization.id, **values))


@pytest.fixture()
def seeded_timesheets(db_session: Session, organization: Organization) -> Organization:
    for day in range(1, 8):
        _add_timesheet(
            db_session,
            organization,
            date=date(2024, 7, day),
            staff="Jane" if day % 2 else "Omar",
            time=Decimal("100"),
            billable_amount=Decimal("10"),
            billable=day != 7,
            job_name=f"Annual accounts {day}" if day < 6 else None,
        )
    other = Organization(name="Other Practice", slug="other")
    db_session.add(other)
    db_session.flush()
    _add_timesheet(db_session, other, date=date(2024, 7, 3), staff="Jane", billable=True)
    db_session.commit()
    return organization


def test_upload_source_pages_through_tenant_rows(db_session: Session, seeded_timesheets: Organization) -> None:
    fetcher = PagedTableFetcher(UploadRepository(db_session).timesheets(), page_size=3)

    rows = fetcher.fetch_all(seeded_timesheets.id)

    assert len(rows) == 7
    assert {row["date"] for row in rows} == {date(2024, 7, day) for day in range(1, 8)}
    assert set(rows[0]) >= {"date", "staff", "time", "billable_amount", "billable", "job_name"}


def test_upload_source_applies_filters(db_session: Session, seeded_timesheets: Organization) -> None:
    fetcher = PagedTableFetcher(UploadRepository(db_session).timesheets(), page_size=2)
    tenant_id = seeded_timesheets.id

    in_range = fetcher.fetch_all(tenant_id, [DateRangeFilter(date(2024, 7, 2), date(2024, 7, 4))])
    jane = fetcher.fetch_all(tenant_id, [EqualsFilter(CategoryField.STAFF, "Jane")])
    billable = fetcher.fetch_all(tenant_id, [FlagFilter(FlagField.BILLABLE, True)])
    not_billable = fetcher.fetch_all(tenant_id, [FlagFilter(FlagField.BILLABLE, False)])

    assert len(in_range) == 3
    assert {row["staff"] for row in jane} == {"Jane"}
    assert len(jane) == 4
    assert len(billable) == 6
    assert [row["date"] for row in not_billable] == [date(2024, 7, 7)]


def test_upload_source_job_name_contains_and_negation(
    db_session: Session,
    seeded_timesheets: Organization,
) -> None:
    fetcher = PagedTableFetcher(UploadRepository(db_session).timesheets())
    tenant_id = seeded_timesheets.id

    contains = fetcher.fetch_all(tenant_id, [JobNameFilter("ANNUAL accounts 2")])
    excludes = fetcher.fetch_all(tenant_id, [JobNameFilter("annual accounts 2", negate=True)])

    assert [row["job_name"] for row in contains] == ["Annual accounts 2"]
    # Rows with no job name count as not containing the text.
    assert len(excludes) == 6
    assert sum(1 for row in excludes if row["job_name"] is None) == 2


def test_upload_source_rejects_unknown_column(db_session: Session, organization: Organization) -> None:
    source = UploadRepository(db_session).invoices()

    with pytest.raises(ValueError):
        source.fetch_page(organization.id, [JobNameFilter("x")], 0, 10)
