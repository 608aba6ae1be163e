"""
Common utility functions for the LearnQuest assessment engine.
"""

import datetime
from typing import Union


def utc_now() -> datetime.datetime:
    """Current UTC time as a naive datetime, matching how timestamps are stored."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def safe_divide(numerator: Union[int, float], denominator: Union[int, float], default: Union[int, float] = 0) -> float:
    """
    Safely divide two numbers, returning a default value if denominator is zero.

    Args:
        numerator: Number to divide
        denominator: Number to divide by
        default: Value to return if denominator is zero

    Returns:
        Result of division or default value
    """
    if denominator == 0:
        return default
    return numerator / denominator


def percentage(part: Union[int, float], whole: Union[int, float]) -> float:
    """``part / whole * 100``, or 0 when ``whole`` is zero."""
    return safe_divide(part * 100, whole)


def round_minutes(delta: datetime.timedelta) -> int:
    """Round a duration to the nearest whole minute, halves rounding up."""
    seconds = delta.total_seconds()
    return int((seconds + 30) // 60)


def parse_bool(value: Union[str, bool, int, None]) -> bool:
    """
    Parse a value as a boolean.

    Args:
        value: Value to parse

    Returns:
        Boolean value
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    if isinstance(value, str):
        return value.lower() in ("yes", "true", "t", "1", "on")
    return False
