from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .dates import coerce_date, is_missing, round_days, safe_float


class RelationType(str, Enum):
    """Precedence relationship types."""

    FS = "FS"  # Finish-to-Start
    SS = "SS"  # Start-to-Start
    FF = "FF"  # Finish-to-Finish
    SF = "SF"  # Start-to-Finish

    @classmethod
    def parse(cls, code: object) -> Optional["RelationType"]:
        if not isinstance(code, str):
            return None
        try:
            return cls(code.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class Relationship:
    """Represents a precedence relationship between two activities."""

    predecessor_id: int
    successor_id: int
    relation_type: RelationType = RelationType.FS
    lag: float = 0  # Can be positive or negative

    def __str__(self) -> str:
        lag = int(self.lag) if float(self.lag).is_integer() else self.lag
        if not lag:
            return f"{self.predecessor_id}{self.relation_type.value}"
        lag_str = f"+{lag}" if lag > 0 else str(lag)
        return f"{self.predecessor_id}{self.relation_type.value}{lag_str}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "PredID": self.predecessor_id,
            "SuccID": self.successor_id,
            "RelType": self.relation_type.value,
            "Lag_d": self.lag,
        }


def _pick(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if not is_missing(value):
            return value
    return None


@dataclass(frozen=True)
class Activity:
    """Baseline activity record. Never mutated by a pass."""

    id: int
    name: str = ""
    duration: float = 0

    # Baseline anchors
    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None

    milestone_flag: bool = False
    percent_complete: float = 0
    wbs_level: Optional[int] = None

    @property
    def is_milestone(self) -> bool:
        return self.milestone_flag or self.duration == 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["Activity"]:
        """
        Coerce a normalized activity record.

        Returns None when the id is missing or not a finite number. A missing
        duration is derived from the baseline early dates when both exist.
        """
        raw_id = safe_float(_pick(record, "id", "ActivityID"))
        if raw_id is None:
            return None

        early_start = coerce_date(_pick(record, "early_start", "earlyStart"))
        early_finish = coerce_date(_pick(record, "early_finish", "earlyFinish"))

        duration = safe_float(_pick(record, "duration_days", "durationDays", "duration"))
        if duration is None:
            if early_start is not None and early_finish is not None:
                duration = max(0, round_days((early_finish - early_start).days))
            else:
                duration = 0
        duration = float(max(0.0, duration))
        if duration.is_integer():
            duration = int(duration)

        flag = _pick(record, "is_milestone", "isMilestone")
        if isinstance(flag, str):
            flag = flag.strip().lower() == "true"

        percent = safe_float(_pick(record, "percent_complete", "percentComplete"))
        wbs = safe_float(_pick(record, "wbs_level", "wbsLevel"))
        name = _pick(record, "name")

        return cls(
            id=int(raw_id),
            name="" if name is None else str(name).strip(),
            duration=duration,
            early_start=early_start,
            early_finish=early_finish,
            late_start=coerce_date(_pick(record, "late_start", "lateStart")),
            late_finish=coerce_date(_pick(record, "late_finish", "lateFinish")),
            milestone_flag=bool(flag) if flag is not None else False,
            percent_complete=max(0.0, min(100.0, percent or 0.0)),
            wbs_level=None if wbs is None else int(wbs),
        )


@dataclass(frozen=True)
class Network:
    """
    Validated activity graph stored as an integer-indexed arena.

    ``activities[i]`` is the activity at dense index ``i``; ``successors[i]``
    holds its outgoing relationships and ``in_degree[i]`` its incoming count.
    Passes copy ``in_degree`` before consuming it.
    """

    activities: Tuple[Activity, ...] = ()
    index: Mapping[int, int] = field(default_factory=dict)
    successors: Tuple[Tuple[Relationship, ...], ...] = ()
    in_degree: Tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.activities)

    def __contains__(self, activity_id: object) -> bool:
        return activity_id in self.index

    def get(self, activity_id: int) -> Optional[Activity]:
        idx = self.index.get(activity_id)
        return None if idx is None else self.activities[idx]

    @property
    def relationships(self) -> Tuple[Relationship, ...]:
        return tuple(rel for rels in self.successors for rel in rels)

    def with_duration(self, activity_id: int, duration: float) -> "Network":
        """Return a copy with one activity's working duration replaced."""
        idx = self.index[activity_id]
        activities = list(self.activities)
        activities[idx] = replace(activities[idx], duration=duration)
        return replace(self, activities=tuple(activities))


@dataclass(frozen=True)
class ScheduledActivity:
    """Computed schedule record for one activity."""

    id: int
    name: str
    duration: float
    early_start: Optional[date]
    early_finish: Optional[date]
    late_start: Optional[date]
    late_finish: Optional[date]
    total_float: Optional[int]
    free_float: Optional[int]
    is_milestone: bool = False
    percent_complete: float = 0
    wbs_level: Optional[int] = None

    @property
    def is_critical(self) -> bool:
        return self.total_float is not None and self.total_float <= 0

    @classmethod
    def from_baseline(cls, activity: Activity) -> "ScheduledActivity":
        """Pass a baseline activity through with its own dates."""
        total_float = None
        if activity.early_start is not None and activity.late_start is not None:
            total_float = (activity.late_start - activity.early_start).days
        return cls(
            id=activity.id,
            name=activity.name,
            duration=activity.duration,
            early_start=activity.early_start,
            early_finish=activity.early_finish,
            late_start=activity.late_start,
            late_finish=activity.late_finish,
            total_float=total_float,
            free_float=None,
            is_milestone=activity.is_milestone,
            percent_complete=activity.percent_complete,
            wbs_level=activity.wbs_level,
        )

    def to_record(self) -> Dict[str, Any]:
        def iso(value: Optional[date]) -> Optional[str]:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "name": self.name,
            "earlyStart": iso(self.early_start),
            "earlyFinish": iso(self.early_finish),
            "lateStart": iso(self.late_start),
            "lateFinish": iso(self.late_finish),
            "durationDays": self.duration,
            "totalFloatDays": self.total_float,
            "freeFloatDays": self.free_float,
            "isMilestone": self.is_milestone,
            "percentComplete": self.percent_complete,
            "wbsLevel": self.wbs_level,
        }


@dataclass(frozen=True)
class ScenarioImpact:
    activity_id: int
    delta_days: float


@dataclass(frozen=True)
class Scenario:
    """A named duration change applied to one activity."""

    id: str
    title: str
    activity_id: int
    delta_days: float
    created_at: datetime

    @property
    def impact(self) -> ScenarioImpact:
        return ScenarioImpact(self.activity_id, self.delta_days)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "activityId": self.activity_id,
            "deltaDays": self.delta_days,
            "createdAt": self.created_at.isoformat(),
        }


def activities_from_records(records: Sequence[Any]) -> Tuple[Activity, ...]:
    """Coerce a mix of Activity objects and raw mappings, skipping invalid ids."""
    activities = []
    for record in records:
        activity = record if isinstance(record, Activity) else Activity.from_record(record)
        if activity is not None:
            activities.append(activity)
    return tuple(activities)
