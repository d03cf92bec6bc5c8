from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi import HTTPException

from app.services.financial_year import (
    FISCAL_MONTHS,
    comparison_windows,
    current_financial_year,
    fiscal_month_index,
    parse_reference_date,
    shift_back_one_year,
)


@pytest.mark.parametrize(
    "reference",
    [
        date(2024, 7, 1),
        date(2024, 12, 31),
        date(2025, 1, 1),
        date(2025, 6, 30),
        date(2024, 2, 29),
    ],
)
def test_current_window_contains_reference_and_spans_july_to_june(reference: date) -> None:
    window = current_financial_year(reference)

    assert window.start_date <= reference <= window.end_date
    assert (window.start_date.month, window.start_date.day) == (7, 1)
    assert window.end_date == date(window.start_date.year + 1, 6, 30)
    assert window.end_year == window.start_year + 1


def test_every_day_of_a_year_lands_in_its_financial_year() -> None:
    day = date(2023, 1, 1)
    while day.year == 2023:
        window = current_financial_year(day)
        assert window.start_date <= day <= window.end_date
        day += timedelta(days=1)


def test_full_year_comparison_windows_are_consecutive() -> None:
    current, last = comparison_windows(date(2025, 3, 15))

    assert (current.start_date, current.end_date) == (date(2024, 7, 1), date(2025, 6, 30))
    assert (last.start_date, last.end_date) == (date(2023, 7, 1), date(2024, 6, 30))


def test_same_point_in_time_ends_at_reference_and_year_earlier() -> None:
    current, last = comparison_windows(date(2025, 3, 15), same_point_in_time=True)

    assert current.end_date == date(2025, 3, 15)
    assert last.start_date == date(2023, 7, 1)
    assert last.end_date == date(2024, 3, 15)


def test_same_point_in_time_on_leap_day_never_passes_prior_year_end() -> None:
    current, last = comparison_windows(date(2024, 2, 29), same_point_in_time=True)

    assert current.end_date == date(2024, 2, 29)
    assert last.end_date == date(2023, 2, 28)
    assert last.end_date <= date(2023, 6, 30)


def test_shift_back_one_year_clamps_leap_day() -> None:
    assert shift_back_one_year(date(2024, 2, 29)) == date(2023, 2, 28)
    assert shift_back_one_year(date(2024, 3, 1)) == date(2023, 3, 1)


def test_fiscal_month_index_orders_july_first() -> None:
    assert [fiscal_month_index(month) for month in (7, 12, 1, 6)] == [0, 5, 6, 11]
    assert FISCAL_MONTHS[fiscal_month_index(2)] == "February"
    assert len(FISCAL_MONTHS) == 12


def test_month_range_resolves_calendar_year_inside_window() -> None:
    window = current_financial_year(date(2025, 3, 15))

    assert window.month_range("October") == (date(2024, 10, 1), date(2024, 10, 31))
    assert window.month_range("February") == (date(2025, 2, 1), date(2025, 2, 28))
    assert window.month_range("Smarch") is None


def test_lenient_reference_parsing_falls_back_to_today() -> None:
    today = date(2025, 3, 15)

    assert parse_reference_date(None, today=today, strict=False) == today
    assert parse_reference_date("not-a-date", today=today, strict=False) == today
    assert parse_reference_date("2024-11-02", today=today, strict=False) == date(2024, 11, 2)
    assert parse_reference_date("2024-11-02T10:30:00Z", today=today, strict=False) == date(2024, 11, 2)


def test_strict_reference_parsing_raises_server_error() -> None:
    with pytest.raises(HTTPException) as exc_info:
        parse_reference_date("31/12/2024", today=date(2025, 3, 15), strict=True)

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == {"error": "Invalid asOfDate: 31/12/2024"}
