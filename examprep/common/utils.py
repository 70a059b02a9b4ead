"""
Utility Functions

Small helpers shared across the application.
"""

import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float]


def utcnow() -> datetime.datetime:
    """Current UTC time as a naive datetime, matching what the database stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def serialize_datetime(value: datetime.datetime) -> str:
    """
    Serialize a datetime to ISO format with a ``Z`` suffix for naive UTC values.

    Args:
        value: Datetime to serialize

    Returns:
        ISO formatted string
    """
    if value.tzinfo is None:
        return value.isoformat() + "Z"
    return value.isoformat()


def round_half_up(value: Number, digits: int = 0) -> Number:
    """
    Round halves away from zero instead of to the nearest even number.

    Args:
        value: Value to round
        digits: Number of decimal places to keep

    Returns:
        An int when ``digits`` is 0, otherwise a float
    """
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)


def safe_divide(numerator: Number, denominator: Number, default: Number = 0) -> float:
    """
    Safely divide two numbers, returning ``default`` when the denominator is zero.

    Args:
        numerator: The numerator
        denominator: The denominator
        default: Value returned for a zero denominator

    Returns:
        The quotient or the default
    """
    if denominator == 0:
        return default
    return numerator / denominator


def percentage(part: Number, whole: Number) -> int:
    """Whole-number percentage of ``part`` in ``whole`` (0 when ``whole`` is 0)."""
    return round_half_up(safe_divide(part, whole) * 100)
