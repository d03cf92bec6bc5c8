"""Offset-paged retrieval from row-capped upload tables."""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Protocol
from uuid import UUID

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class CategoryField(str, enum.Enum):
    STAFF = "staff"
    ACCOUNT_MANAGER = "account_manager"
    JOB_MANAGER = "job_manager"
    CLIENT_GROUP = "client_group"


class FlagField(str, enum.Enum):
    BILLABLE = "billable"
    CAPACITY_REDUCING = "capacity_reducing"
    BILLED = "billed"


@dataclass(frozen=True, slots=True)
class DateRangeFilter:
    """Inclusive date bounds; either side may be open."""

    start: date | None = None
    end: date | None = None


@dataclass(frozen=True, slots=True)
class EqualsFilter:
    field: CategoryField
    value: str


@dataclass(frozen=True, slots=True)
class FlagFilter:
    field: FlagField
    value: bool = True


@dataclass(frozen=True, slots=True)
class JobNameFilter:
    """Case-insensitive substring match on the job name.

    With ``negate`` the row matches when the name lacks the text or is null.
    """

    text: str
    negate: bool = False


RowFilter = DateRangeFilter | EqualsFilter | FlagFilter | JobNameFilter
Row = dict[str, object]


class DataFetchError(Exception):
    """Raised when any page of a paged fetch cannot be retrieved."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"Failed to fetch {table}: {message}")
        self.table = table
        self.message = message


class TablePageSource(Protocol):
    """A tenant-scoped table that returns at most ``limit`` rows per call."""

    table_name: str

    def fetch_page(
        self,
        tenant_id: UUID,
        filters: Sequence[RowFilter],
        offset: int,
        limit: int,
    ) -> list[Row]:
        ...


class PagedTableFetcher:
    """Drain a page source at increasing offsets until a short page."""

    def __init__(self, source: TablePageSource, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive.")
        self.source = source
        self.page_size = page_size

    def fetch_all(self, tenant_id: UUID, filters: Sequence[RowFilter] = ()) -> list[Row]:
        rows: list[Row] = []
        offset = 0
        pages = 0
        while True:
            try:
                page = self.source.fetch_page(tenant_id, filters, offset, self.page_size)
            except DataFetchError:
                logger.error(
                    "Aborting fetch of %s for tenant %s at offset %d",
                    self.source.table_name,
                    tenant_id,
                    offset,
                )
                raise
            pages += 1
            rows.extend(page)
            logger.debug(
                "Fetched page %d of %s (%d rows) at offset %d",
                pages,
                self.source.table_name,
                len(page),
                offset,
            )
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return rows
