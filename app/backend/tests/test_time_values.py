from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from app.services.time_values import (
    clean_label,
    decode_time_value,
    parse_record_date,
    round_1dp,
    round_2dp,
    round_whole,
    to_decimal,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (12, Decimal("0.2")),
        (112, Decimal("1.2")),
        (0, Decimal("0")),
        (-5, Decimal("0")),
        (None, Decimal("0")),
        ("112", Decimal("1.2")),
        ("abc", Decimal("0")),
        (float("nan"), Decimal("0")),
        (730, Decimal("7.5")),
        (Decimal("111.6"), Decimal("1.2")),
        (100, Decimal("1")),
    ],
)
def test_decode_time_value_known_values(raw: object, expected: Decimal) -> None:
    assert decode_time_value(raw) == expected


def test_decode_rounds_before_choosing_branch() -> None:
    # 99.5 rounds half up to 100, i.e. one whole hour.
    assert decode_time_value(Decimal("99.5")) == Decimal("1")


def test_to_decimal_coerces_loose_amounts() -> None:
    assert to_decimal("1,000") == Decimal("0")
    assert to_decimal(" 250.50 ") == Decimal("250.50")
    assert to_decimal(10) == Decimal("10")
    assert to_decimal(True) == Decimal("0")
    assert to_decimal("Infinity") == Decimal("0")
    assert to_decimal(["1"]) == Decimal("0")


def test_parse_record_date_accepts_dates_and_iso_strings() -> None:
    assert parse_record_date(date(2024, 7, 5)) == date(2024, 7, 5)
    assert parse_record_date(datetime(2024, 7, 5, 13, 0)) == date(2024, 7, 5)
    assert parse_record_date("2024-07-05") == date(2024, 7, 5)
    assert parse_record_date("2024-07-05T23:59:59") == date(2024, 7, 5)
    assert parse_record_date("05/07/2024") is None
    assert parse_record_date("") is None
    assert parse_record_date(20240705) is None


def test_output_rounding_is_half_up() -> None:
    assert round_2dp(Decimal("0.005")) == 0.01
    assert round_2dp(Decimal("0.004")) == 0.0
    assert round_1dp(Decimal("12.25")) == 12.3
    assert round_whole(Decimal("2.5")) == 3


def test_clean_label_trims() -> None:
    assert clean_label("  Jane Doe ") == "Jane Doe"
    assert clean_label(None) == ""


def test_decode_treats_oversized_values_as_zero() -> None:
    assert decode_time_value("1e30") == Decimal("0")
    assert decode_time_value(1e30) == Decimal("0")
    assert decode_time_value(Decimal("1e20")) == Decimal("1e18")


def test_rounding_handles_sums_beyond_default_precision() -> None:
    assert round_whole(Decimal("123456789012345678901234567890.5")) == 123456789012345678901234567891
    assert round_2dp(Decimal("1e30")) == 1e30
    assert round_1dp(Decimal("1e26") + Decimal("0.05")) == 1e26
