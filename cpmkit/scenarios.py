from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import uuid

import pandas as pd

from .calc_log import CalculationLog
from .dates import from_day_number, safe_float
from .engine import Clock, ScheduleSnapshot, critical_paths, cyclic_groups, schedule
from .models import (
    Activity,
    Relationship,
    Scenario,
    ScenarioImpact,
    ScheduledActivity,
    activities_from_records,
)
from .network import build_network


def validate_impact(
    activities: Sequence[Activity], impact: Optional[ScenarioImpact]
) -> Tuple[bool, str]:
    """Check a scenario request before anything is simulated."""
    if impact is None:
        return True, "No impact."
    if safe_float(impact.delta_days) is None:
        return False, f"Duration change '{impact.delta_days}' is not a finite number of days."
    if not any(act.id == impact.activity_id for act in activities):
        return False, f"Activity '{impact.activity_id}' not found."
    return True, "Impact is valid."


def simulate(
    baseline_activities: Sequence[Any],
    edges: Iterable[Relationship],
    impact: Optional[ScenarioImpact] = None,
    now: Optional[Clock] = None,
) -> ScheduleSnapshot:
    """
    Re-solve the whole network from the baseline, optionally changing one
    activity's duration by ``impact.delta_days`` (clamped at zero).

    Executes:
    1. Network build from the untouched baseline
    2. Duration impact
    3. Forward pass (ES, EF)
    4. Backward pass (LS, LF, TF, FF)
    5. Critical path identification

    Identical inputs give identical snapshots.
    """
    log = CalculationLog()
    log.banner("CPM/PDM CALCULATION", "Precedence Diagramming Method (Activity-on-Node)")

    baseline = activities_from_records(baseline_activities)
    network = build_network(baseline, edges, log)

    applied = False
    if impact is not None and impact.activity_id in network:
        delta = safe_float(impact.delta_days)
        if delta is not None:
            applied = True
            act = network.get(impact.activity_id)
            duration = max(0, act.duration + delta)
            network = network.with_duration(act.id, duration)
            log.section("SCENARIO IMPACT")
            log.log(f"{act.id}: Duration = max(0, {act.duration:g} {delta:+g}) = {duration:g}")

    early, late = schedule(network, now, log)
    paths = critical_paths(network, early, late)

    results: List[ScheduledActivity] = []
    solved = set()
    for act in baseline:
        working = network.get(act.id)
        if working is None or act.id in solved:
            results.append(ScheduledActivity.from_baseline(act))
            continue
        solved.add(act.id)
        early_start = from_day_number(early.start[act.id])
        late_start = from_day_number(late.start[act.id])
        total_float = (late_start - early_start).days
        results.append(
            ScheduledActivity(
                id=act.id,
                name=act.name,
                duration=working.duration,
                early_start=early_start,
                early_finish=from_day_number(early.finish[act.id]),
                late_start=late_start,
                late_finish=from_day_number(late.finish[act.id]),
                total_float=total_float,
                free_float=min(late.free_float[act.id], max(0, total_float)),
                is_milestone=working.is_milestone,
                percent_complete=act.percent_complete,
                wbs_level=act.wbs_level,
            )
        )

    snapshot = ScheduleSnapshot(
        activities=tuple(results),
        project_start=from_day_number(early.project_start) if early.start else None,
        project_finish=from_day_number(early.project_finish) if early.finish else None,
        critical_paths=paths,
        unresolved_ids=tuple(early.unresolved),
        cycles=cyclic_groups(network, early.unresolved),
        impact=impact if applied else None,
        calculation_log=log,
    )

    summary = [
        "CALCULATION COMPLETE",
        f"Project Duration: {snapshot.project_duration} days",
    ]
    if paths:
        summary.append(f"Critical Paths: {len(paths)}")
        summary.extend(
            f"  {idx}. {' -> '.join(str(i) for i in path)}" for idx, path in enumerate(paths, start=1)
        )
    else:
        summary.append("Critical Path: (none)")
    if snapshot.is_partial:
        summary.append(f"Partial schedule: {len(snapshot.unresolved_ids)} activities unresolved")
    log.log("")
    log.banner(*summary)
    return snapshot


class ScenarioLibrary:
    """
    Bounded, ordered collection of named scenarios over one baseline.

    The baseline snapshot is computed once and kept; at most one scenario is
    active at a time and ``active_schedule`` falls back to the baseline.
    """

    MAX_SCENARIOS = 10

    def __init__(
        self,
        activities: Sequence[Any],
        edges: Iterable[Relationship],
        max_scenarios: Optional[int] = None,
        now: Optional[Clock] = None,
        timestamp: Callable[[], datetime] = pd.Timestamp.now,
    ):
        self.activities: Tuple[Activity, ...] = activities_from_records(activities)
        self.edges: Tuple[Relationship, ...] = tuple(edges)
        self.max_scenarios = max_scenarios if max_scenarios is not None else self.MAX_SCENARIOS
        self.now = now
        self.timestamp = timestamp
        self._scenarios: List[Scenario] = []
        self._active_id: Optional[str] = None
        self._active_schedule: Optional[ScheduleSnapshot] = None
        self.baseline: ScheduleSnapshot = simulate(self.activities, self.edges, None, now)

    def __len__(self) -> int:
        return len(self._scenarios)

    @property
    def scenarios(self) -> Tuple[Scenario, ...]:
        return tuple(self._scenarios)

    @property
    def is_full(self) -> bool:
        return len(self._scenarios) >= self.max_scenarios

    def get(self, scenario_id: str) -> Optional[Scenario]:
        return next((s for s in self._scenarios if s.id == scenario_id), None)

    def save(
        self,
        title: str,
        activity_id: int,
        delta_days: float,
        scenario_id: Optional[str] = None,
    ) -> Tuple[bool, str]:
        """
        Add a scenario to the library.

        Returns:
            Tuple of (success, message)
        """
        if self.is_full:
            return (
                False,
                f"Scenario library is full ({self.max_scenarios} scenarios). Remove one before saving another.",
            )

        ok, msg = validate_impact(self.activities, ScenarioImpact(activity_id, delta_days))
        if not ok:
            return False, msg

        scenario_id = (scenario_id or "").strip() or f"scn-{uuid.uuid4().hex[:8]}"
        if self.get(scenario_id) is not None:
            return False, f"Scenario '{scenario_id}' already exists."

        title = (title or "").strip() or f"Activity {activity_id} {float(delta_days):+g}d"
        self._scenarios.append(
            Scenario(
                id=scenario_id,
                title=title,
                activity_id=activity_id,
                delta_days=delta_days,
                created_at=self.timestamp(),
            )
        )
        return True, f"Scenario '{scenario_id}' saved."

    def remove(self, scenario_id: str) -> Tuple[bool, str]:
        scenario = self.get(scenario_id)
        if scenario is None:
            return False, f"Scenario '{scenario_id}' not found."
        if self._active_id == scenario_id:
            self.reset()
        self._scenarios.remove(scenario)
        return True, f"Scenario '{scenario_id}' removed."

    def activate(self, scenario_id: str) -> Tuple[bool, str]:
        """Simulate a saved scenario and make it the active view."""
        scenario = self.get(scenario_id)
        if scenario is None:
            return False, f"Scenario '{scenario_id}' not found."
        self._active_schedule = simulate(self.activities, self.edges, scenario.impact, self.now)
        self._active_id = scenario_id
        return True, f"Scenario '{scenario.title}' is active."

    def reset(self) -> Tuple[bool, str]:
        self._active_id = None
        self._active_schedule = None
        return True, "Showing baseline schedule."

    @property
    def active_scenario(self) -> Optional[Scenario]:
        return self.get(self._active_id) if self._active_id is not None else None

    @property
    def active_schedule(self) -> ScheduleSnapshot:
        if self._active_schedule is not None:
            return self._active_schedule
        return self.baseline

    def finish_delta(self, scenario_id: str) -> Optional[int]:
        """Days the scenario moves the project finish relative to the baseline."""
        scenario = self.get(scenario_id)
        if scenario is None:
            return None
        snapshot = simulate(self.activities, self.edges, scenario.impact, self.now)
        if snapshot.project_finish is None or self.baseline.project_finish is None:
            return 0
        return (snapshot.project_finish - self.baseline.project_finish).days

    def precompute(self) -> Dict[str, ScheduleSnapshot]:
        """Simulate every saved scenario independently."""
        return {
            scenario.id: simulate(self.activities, self.edges, scenario.impact, self.now)
            for scenario in self._scenarios
        }
