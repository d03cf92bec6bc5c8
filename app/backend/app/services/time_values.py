"""Coercion helpers for loosely typed upload values."""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

ZERO = Decimal("0")
Q0 = Decimal("1")
Q1 = Decimal("0.1")
Q2 = Decimal("0.01")

MINUTES_PER_HOUR = Decimal("60")
PACKED_HOUR = Decimal("100")


def to_decimal(value: object) -> Decimal:
    """Parse an amount that may arrive as a number or a string.

    ``None``, NaN, infinities and anything unparseable count as zero.
    """

    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float, str)):
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            return ZERO
    else:
        return ZERO
    if not parsed.is_finite():
        return ZERO
    return parsed


def decode_time_value(value: object) -> Decimal:
    """Convert a packed timesheet value to fractional hours.

    Values under 100 are minutes (``12`` is 0.2 h). From 100 up, the
    trailing two digits are minutes and the rest whole hours (``112`` is
    1 h 12 min, i.e. 1.2 h). The stored value is rounded to an integer first.
    """

    numeric = to_decimal(value)
    if numeric <= ZERO:
        return ZERO
    try:
        packed = numeric.quantize(Q0, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Too many digits to be a real duration.
        return ZERO
    if packed < PACKED_HOUR:
        return packed / MINUTES_PER_HOUR
    hours = (packed / PACKED_HOUR).to_integral_value(rounding=ROUND_FLOOR)
    minutes = packed % PACKED_HOUR
    return hours + minutes / MINUTES_PER_HOUR


def parse_record_date(value: object) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def clean_label(value: object) -> str:
    """Trimmed string form of a categorical value; blank for ``None``."""

    if value is None:
        return ""
    return str(value).strip()


def _half_up(value: Decimal, quantum: Decimal) -> Decimal:
    """Round half up with enough precision for the integer part of any sum."""

    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() - quantum.as_tuple().exponent + 2)
        return value.quantize(quantum, rounding=ROUND_HALF_UP)


def round_whole(value: Decimal) -> int:
    return int(_half_up(value, Q0))


def round_2dp(value: Decimal) -> float:
    return float(_half_up(value, Q2))


def round_1dp(value: Decimal) -> float:
    return float(_half_up(value, Q1))
