from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional

from .dates import coerce_date

PADDING_DAYS = 7
LABEL_GUTTER = 160


@dataclass(frozen=True)
class TimeDomain:
    """Padded date range projected onto a horizontal pixel axis."""

    min: Optional[date]
    max: Optional[date]
    days: int
    gutter: float = LABEL_GUTTER

    def scale_x(self, value: Any, width: float) -> float:
        if self.min is None or self.max is None:
            return 0
        total = max(1, (self.max - self.min).days)
        when = coerce_date(value) or self.min
        return (when - self.min).days / total * (width - self.gutter) + self.gutter


def _field(item: Any, attr: str, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(attr, item.get(key))
    return getattr(item, attr, None)


def compute_domain(
    items: Iterable[Any],
    padding_days: int = PADDING_DAYS,
    gutter: float = LABEL_GUTTER,
) -> TimeDomain:
    """
    Time domain for a set of scheduled items.

    Items are ScheduledActivity objects or mappings with ``early_start`` /
    ``early_finish`` (or ``ES`` / ``EF``). The range runs from the earliest
    start to the latest finish, padded on both sides.
    """
    starts, finishes = [], []
    for item in items:
        start = coerce_date(_field(item, "early_start", "ES"))
        finish = coerce_date(_field(item, "early_finish", "EF"))
        if start is not None:
            starts.append(start)
        if finish is not None:
            finishes.append(finish)

    if not starts or not finishes:
        return TimeDomain(min=None, max=None, days=0, gutter=gutter)

    pad = timedelta(days=padding_days)
    lo = min(starts) - pad
    hi = max(finishes) + pad
    return TimeDomain(min=lo, max=hi, days=(hi - lo).days, gutter=gutter)

