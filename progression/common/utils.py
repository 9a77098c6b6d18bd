"""
Common utility functions for the progression engine.

Numeric helpers shared by scoring and mastery, and a single clock.
"""

import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number) -> int:
    """
    Round to the nearest integer, halves away from zero.

    Python's built-in round() uses banker's rounding, which would score
    12.5% as 12; percentages and mastery levels round 12.5 to 13.

    Args:
        value: Number to round

    Returns:
        Rounded integer
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percentage(part: Number, whole: Number) -> int:
    """
    Integer percentage of ``part`` over ``whole``; 0 when ``whole`` is 0.

    Args:
        part: Numerator
        whole: Denominator

    Returns:
        round_half_up(part / whole * 100)
    """
    if not whole:
        return 0
    return round_half_up(Decimal(str(part)) * 100 / Decimal(str(whole)))


def clamp(value: int, lower: int, upper: int) -> int:
    """Constrain ``value`` to the closed range [lower, upper]."""
    return max(lower, min(upper, value))


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime.datetime) -> datetime.datetime:
    """Convert an aware timestamp to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
