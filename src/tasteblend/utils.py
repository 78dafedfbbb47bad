"""Utility helpers for tasteblend."""

import math
from datetime import datetime


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with halves rounded up.

    Python's round() uses banker's rounding (round(62.5) == 62); scores
    and percentages here always round .5 upwards (62.5 -> 63).
    """
    return int(math.floor(value + 0.5))


def now_iso() -> str:
    """Current local time as an ISO timestamp string."""
    return datetime.now().isoformat(timespec="seconds")
