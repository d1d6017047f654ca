from __future__ import annotations

from datetime import date, datetime
import math
from typing import Optional

import pandas as pd


def is_missing(value: object) -> bool:
    try:
        return value is None or bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def safe_float(value: object) -> Optional[float]:
    """Coerce a cell value to a finite float, or None."""
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def coerce_date(value: object) -> Optional[date]:
    """Coerce date, datetime, Timestamp or ISO text to a date (no time-of-day)."""
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and not value.strip():
        return None
    stamp = pd.to_datetime(value, errors="coerce")
    if is_missing(stamp):
        return None
    return stamp.date()


def to_day_number(value: date) -> float:
    return float(value.toordinal())


def from_day_number(day: float) -> date:
    """Date of the nearest whole day number, halves going up."""
    return date.fromordinal(round_days(day))


def round_days(days: float) -> int:
    """Round to whole days with halves going up, e.g. -2.5 -> -2 and 2.5 -> 3."""
    return int(math.floor(days + 0.5))
