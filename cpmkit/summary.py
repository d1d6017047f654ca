from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Optional, Tuple

import pandas as pd

NEAR_CRITICAL_THRESHOLD = 5
FLOAT_DISTRIBUTION_CAP = 20


@dataclass(frozen=True)
class ScheduleKPIs:
    total: int
    critical: int
    near_critical: int
    milestones: int
    start: Optional[date]
    finish: Optional[date]


def classify_float(total_float: Optional[float], threshold: float = NEAR_CRITICAL_THRESHOLD) -> str:
    """Bucket an activity as "critical", "near" or "non" by total float."""
    if total_float is None or pd.isna(total_float):
        return "non"
    if total_float <= 0:
        return "critical"
    if total_float <= threshold:
        return "near"
    return "non"


def _frame(records: Iterable[Any]) -> pd.DataFrame:
    rows = []
    for rec in records:
        rows.append(
            {
                "total_float": rec.total_float,
                "duration": rec.duration,
                "is_milestone": rec.is_milestone,
                "early_start": rec.early_start,
                "early_finish": rec.early_finish,
            }
        )
    return pd.DataFrame(rows, columns=["total_float", "duration", "is_milestone", "early_start", "early_finish"])


def summarize(records: Iterable[Any], near_critical_threshold: float = NEAR_CRITICAL_THRESHOLD) -> ScheduleKPIs:
    """
    Headline numbers for a schedule snapshot (or any iterable of
    ScheduledActivity records).
    """
    df = _frame(records)
    if df.empty:
        return ScheduleKPIs(0, 0, 0, 0, None, None)

    tf = pd.to_numeric(df["total_float"], errors="coerce")
    milestones = df["is_milestone"].astype(bool) | (pd.to_numeric(df["duration"], errors="coerce") == 0)
    starts = df["early_start"].dropna()
    finishes = df["early_finish"].dropna()
    return ScheduleKPIs(
        total=len(df),
        critical=int((tf == 0).sum()),
        near_critical=int(((tf > 0) & (tf <= near_critical_threshold)).sum()),
        milestones=int(milestones.sum()),
        start=min(starts) if len(starts) else None,
        finish=max(finishes) if len(finishes) else None,
    )


def float_distribution(records: Iterable[Any], cap: int = FLOAT_DISTRIBUTION_CAP) -> List[Tuple[str, int]]:
    """
    Count activities per total float value.

    Values above ``cap`` share one ``">cap"`` bucket, listed last; missing
    float counts as 0.
    """
    df = _frame(records)
    if df.empty:
        return []
    overflow = f">{cap}"
    tf = pd.to_numeric(df["total_float"], errors="coerce").fillna(0)
    keys = tf.map(lambda v: overflow if v > cap else f"{v:g}")
    counts = keys.value_counts()

    def order(key: str) -> Tuple[int, float]:
        return (1, 0.0) if key == overflow else (0, float(key))

    return [(key, int(counts[key])) for key in sorted(counts.index, key=order)]
