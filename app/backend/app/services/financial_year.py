"""Financial-year windows (1 July to 30 June) derived from a reference date."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

FY_START_MONTH = 7

FISCAL_MONTHS: tuple[str, ...] = (
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
)


@dataclass(frozen=True, slots=True)
class FinancialYearWindow:
    start_date: date
    end_date: date
    start_year: int
    end_year: int

    def contains(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    def month_range(self, month_name: str) -> tuple[date, date] | None:
        """Calendar bounds of a named month inside this financial year.

        Unknown month names yield ``None``. The range is not clipped to
        ``end_date``.
        """

        try:
            month = list(calendar.month_name).index(month_name)
        except ValueError:
            return None
        if month == 0:
            return None
        year = self.start_year if month >= FY_START_MONTH else self.end_year
        return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def fy_start_year(reference: date) -> int:
    if reference.month >= FY_START_MONTH:
        return reference.year
    return reference.year - 1


def fiscal_month_index(month: int) -> int:
    """Map a calendar month (1-12) to its position in the financial year."""

    if month >= FY_START_MONTH:
        return month - FY_START_MONTH
    return month + (12 - FY_START_MONTH)


def financial_year(start_year: int) -> FinancialYearWindow:
    return FinancialYearWindow(
        start_date=date(start_year, FY_START_MONTH, 1),
        end_date=date(start_year + 1, FY_START_MONTH - 1, 30),
        start_year=start_year,
        end_year=start_year + 1,
    )


def current_financial_year(reference: date) -> FinancialYearWindow:
    return financial_year(fy_start_year(reference))


def previous_financial_year(reference: date) -> FinancialYearWindow:
    return financial_year(fy_start_year(reference) - 1)


def shift_back_one_year(value: date) -> date:
    """Same calendar day one year earlier; 29 February becomes 28 February."""

    try:
        return value.replace(year=value.year - 1)
    except ValueError:
        return value.replace(year=value.year - 1, day=28)


def comparison_windows(
    reference: date,
    *,
    same_point_in_time: bool = False,
) -> tuple[FinancialYearWindow, FinancialYearWindow]:
    """Current and prior financial-year windows for ``reference``.

    With ``same_point_in_time`` the current window ends at ``reference`` and
    the prior window ends one calendar year earlier, never past its own
    30 June.
    """

    current = current_financial_year(reference)
    last = previous_financial_year(reference)
    if not same_point_in_time:
        return current, last

    shifted = shift_back_one_year(reference)
    # ISO strings order the same way as the dates they encode.
    last_end = shifted if shifted.isoformat() <= last.end_date.isoformat() else last.end_date
    return replace(current, end_date=reference), replace(last, end_date=last_end)


def parse_reference_date(raw: str | None, *, today: date, strict: bool) -> date:
    """Resolve a query-string reference date.

    Missing values mean ``today``. Unparseable values fall back to ``today``
    unless ``strict`` is set, in which case the request fails as a server
    error.
    """

    if raw is None or not raw.strip():
        return today
    candidate = raw.strip()
    try:
        if len(candidate) > 10:
            return datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
        return date.fromisoformat(candidate)
    except ValueError as exc:
        if strict:
            logger.error("Unparseable asOfDate %r", raw)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"error": f"Invalid asOfDate: {raw}"},
            ) from exc
        logger.debug("Ignoring unparseable reference date %r", raw)
        return today
