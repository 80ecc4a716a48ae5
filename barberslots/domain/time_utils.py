"""
Wall-clock time arithmetic on ``"HH:MM"`` strings.

All times are local minute-of-day values. Nothing here wraps past midnight:
a shop never stays open that late, so ``add_minutes("23:30", 45)`` yields
``"24:15"`` and callers treat that as out of range.
"""

import re

from .exceptions import InvalidTimeError

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?$")


def time_to_minutes(value: str) -> int:
    """Convert ``"HH:MM"`` (or ``"HH:MM:SS"``) to minutes since midnight."""
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as zero-padded ``"HH:MM"``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: str, duration: int) -> str:
    """Return ``value`` shifted by ``duration`` minutes."""
    return minutes_to_time(time_to_minutes(value) + duration)


def parse_time(value: str) -> str:
    """
    Validate a wall-clock time and normalise it to ``"HH:MM"``.

    Accepts ``"9:05"``, ``"09:05"`` and the database form ``"09:05:00"``.

    Raises:
        InvalidTimeError: If the value is not a valid 24-hour time
    """
    if not isinstance(value, str):
        raise InvalidTimeError(f"Time must be a string, got {type(value).__name__}")

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeError(f"Invalid time '{value}', expected HH:MM")

    return f"{int(match.group(1)):02d}:{match.group(2)}"
