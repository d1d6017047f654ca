from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import heapq
import math
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import networkx as nx
import pandas as pd

from .calc_log import CalculationLog
from .dates import coerce_date, round_days, to_day_number
from .models import (
    Activity,
    Network,
    RelationType,
    Relationship,
    ScenarioImpact,
    ScheduledActivity,
)

Clock = Callable[[], date]


def _fmt(day: float) -> str:
    text = date.fromordinal(int(math.floor(day))).isoformat()
    frac = day - math.floor(day)
    return f"{text} (+{frac:g}d)" if frac else text


def _fmt_days(days: float) -> str:
    return f"{days:g}"


@dataclass
class EarlyDates:
    """Forward pass result. Dates are day numbers (proleptic ordinals)."""

    start: Dict[int, float] = field(default_factory=dict)
    finish: Dict[int, float] = field(default_factory=dict)
    order: List[int] = field(default_factory=list)
    unresolved: List[int] = field(default_factory=list)
    default_epoch: float = 0.0

    @property
    def is_partial(self) -> bool:
        return bool(self.unresolved)

    @property
    def project_start(self) -> Optional[float]:
        return min(self.start.values()) if self.start else None

    @property
    def project_finish(self) -> Optional[float]:
        return max(self.finish.values()) if self.finish else None


@dataclass
class LateDates:
    """Backward pass result: late dates (day numbers) and floats (days)."""

    start: Dict[int, float] = field(default_factory=dict)
    finish: Dict[int, float] = field(default_factory=dict)
    total_float: Dict[int, int] = field(default_factory=dict)
    free_float: Dict[int, int] = field(default_factory=dict)
    project_finish: Optional[float] = None


def default_epoch(network: Network, now: Optional[Clock] = None) -> float:
    """Earliest baseline ES, or today when no activity carries one."""
    starts = [
        to_day_number(act.early_start)
        for act in network.activities
        if act.early_start is not None
    ]
    if starts:
        return min(starts)
    today = coerce_date((now or date.today)())
    return to_day_number(today)


def _baseline_start(act: Activity) -> Optional[float]:
    return to_day_number(act.early_start) if act.early_start is not None else None


def _ready_key(network: Network, idx: int) -> Tuple[int, float, int, int]:
    act = network.activities[idx]
    baseline = _baseline_start(act)
    if baseline is None:
        return (1, 0.0, act.id, idx)
    return (0, baseline, act.id, idx)


def early_constraint(rel: Relationship, pred_es: float, pred_ef: float, succ_duration: float) -> float:
    """Earliest successor start imposed by one relationship."""
    if rel.relation_type == RelationType.FS:
        return pred_ef + rel.lag
    if rel.relation_type == RelationType.SS:
        return pred_es + rel.lag
    if rel.relation_type == RelationType.FF:
        return pred_ef + rel.lag - succ_duration
    if rel.relation_type == RelationType.SF:
        return pred_es + rel.lag - succ_duration
    raise ValueError(f"Unknown relationship type: {rel.relation_type!r}")


def forward_pass(
    network: Network,
    epoch: float,
    log: Optional[CalculationLog] = None,
) -> EarlyDates:
    """
    Forward pass calculation to determine Early Start (ES) and Early Finish (EF).

    Kahn's algorithm; ready activities are taken in baseline ES order (ties by
    id, undated activities last). For each relationship type:
    - FS: ES_succ >= EF_pred + lag
    - SS: ES_succ >= ES_pred + lag
    - FF: ES_succ >= EF_pred + lag - duration_succ
    - SF: ES_succ >= ES_pred + lag - duration_succ

    Activities left with incoming links once the queue drains sit in or behind
    a cycle. They keep their own baseline dates and the result is flagged
    partial instead of failing.
    """
    log = log if log is not None else CalculationLog()
    log.section("FORWARD PASS (Calculating ES and EF)")

    result = EarlyDates(default_epoch=epoch)
    in_degree = list(network.in_degree)
    pending: Dict[int, float] = {}

    ready = [_ready_key(network, idx) for idx, degree in enumerate(in_degree) if degree == 0]
    heapq.heapify(ready)

    while ready:
        idx = heapq.heappop(ready)[-1]
        act = network.activities[idx]

        anchor = _baseline_start(act)
        if anchor is None:
            anchor = epoch
        es = max(pending[act.id], anchor) if act.id in pending else anchor
        ef = es + act.duration
        result.start[act.id] = es
        result.finish[act.id] = ef
        result.order.append(act.id)

        if act.id in pending:
            log.log(f"{act.id}: ES = max(constraint {_fmt(pending[act.id])}, anchor {_fmt(anchor)}) = {_fmt(es)}")
        else:
            log.log(f"{act.id} (no predecessors): ES = anchor = {_fmt(es)}")
        log.log(f"  EF = ES + Duration = {_fmt(es)} + {_fmt_days(act.duration)} = {_fmt(ef)}")

        for rel in network.successors[idx]:
            succ_idx = network.index[rel.successor_id]
            succ = network.activities[succ_idx]
            candidate = early_constraint(rel, es, ef, succ.duration)
            if succ.id not in pending or candidate > pending[succ.id]:
                pending[succ.id] = candidate
            in_degree[succ_idx] -= 1
            if in_degree[succ_idx] == 0:
                heapq.heappush(ready, _ready_key(network, succ_idx))

    for idx, degree in enumerate(in_degree):
        if degree <= 0:
            continue
        act = network.activities[idx]
        es = _baseline_start(act)
        if es is None and act.early_finish is not None:
            es = to_day_number(act.early_finish) - act.duration
        if es is None:
            es = epoch
        result.start[act.id] = es
        result.finish[act.id] = es + act.duration
        result.unresolved.append(act.id)

    if result.unresolved:
        ids = ", ".join(str(i) for i in result.unresolved)
        log.warn(
            f"Cyclic/partial network: {len(result.unresolved)} activities kept baseline dates: {ids}"
        )
    if result.finish:
        log.log(f"Project Finish = max(all EF values) = {_fmt(result.project_finish)}")
    return result


def backward_pass(
    network: Network,
    early: EarlyDates,
    project_finish: Optional[float] = None,
    log: Optional[CalculationLog] = None,
) -> LateDates:
    """
    Backward pass calculation to determine LS/LF, Total Float and Free Float.

    Working backwards over each outgoing relationship:
    - FS: LF_pred <= LS_succ - lag
    - FF: LF_pred <= LF_succ - lag
    - SS: LS_pred <= LS_succ - lag
    - SF: LS_pred <= LF_succ - lag

    Activities unresolved by the forward pass are processed last; links to
    successors without late dates yet are ignored.
    """
    log = log if log is not None else CalculationLog()
    log.section("BACKWARD PASS (Calculating LS and LF)")

    if project_finish is None:
        project_finish = early.project_finish
    if project_finish is None:
        finishes = [
            to_day_number(act.early_finish)
            for act in network.activities
            if act.early_finish is not None
        ]
        project_finish = max(finishes) if finishes else early.default_epoch

    result = LateDates(project_finish=project_finish)
    sequence = list(reversed(early.order)) + list(early.unresolved)

    for act_id in sequence:
        idx = network.index[act_id]
        act = network.activities[idx]
        ef = early.finish[act_id]

        lf_candidates: List[float] = []
        ls_candidates: List[float] = []
        for rel in network.successors[idx]:
            succ_id = rel.successor_id
            if succ_id not in result.start:
                continue
            if rel.relation_type == RelationType.FS:
                lf_candidates.append(result.start[succ_id] - rel.lag)
            elif rel.relation_type == RelationType.FF:
                lf_candidates.append(result.finish[succ_id] - rel.lag)
            elif rel.relation_type == RelationType.SS:
                ls_candidates.append(result.start[succ_id] - rel.lag)
            elif rel.relation_type == RelationType.SF:
                ls_candidates.append(result.finish[succ_id] - rel.lag)

        if lf_candidates:
            lf = min(lf_candidates)
            log.log(f"{act_id}: LF = min(FS/FF constraints) = {_fmt(lf)}")
        else:
            lf = max(ef, project_finish)
            log.log(f"{act_id}: LF = max(EF, Project Finish) = {_fmt(lf)}")
        ls = lf - act.duration
        if ls_candidates and min(ls_candidates) < ls:
            ls = min(ls_candidates)
            lf = ls + act.duration
            log.log(f"  LS limited by SS/SF constraints = {_fmt(ls)}, LF = {_fmt(lf)}")
        else:
            log.log(f"  LS = LF - Duration = {_fmt(lf)} - {_fmt_days(act.duration)} = {_fmt(ls)}")

        result.start[act_id] = ls
        result.finish[act_id] = lf

    log.section("FLOAT CALCULATIONS")
    for idx, act in enumerate(network.activities):
        es = early.start[act.id]
        ef = early.finish[act.id]
        total_float = round_days(result.start[act.id] - es)
        result.total_float[act.id] = total_float

        constraints: List[float] = []
        for rel in network.successors[idx]:
            if rel.relation_type == RelationType.FS:
                constraints.append(early.start[rel.successor_id] - rel.lag)
            elif rel.relation_type == RelationType.FF:
                constraints.append(early.finish[rel.successor_id] - rel.lag)

        if constraints:
            free_float = max(0, round_days(min(constraints) - ef))
        else:
            free_float = max(0, total_float)
        # SS/SF limits can pull LS below what the FS/FF successors allow
        free_float = min(free_float, max(0, total_float))
        result.free_float[act.id] = free_float
        log.log(f"{act.id}: TF = {total_float}, FF = {free_float}")

    return result


def _is_driving_link(rel: Relationship, early: EarlyDates) -> bool:
    pred, succ = rel.predecessor_id, rel.successor_id
    if rel.relation_type == RelationType.FS:
        return math.isclose(early.start[succ], early.finish[pred] + rel.lag)
    if rel.relation_type == RelationType.SS:
        return math.isclose(early.start[succ], early.start[pred] + rel.lag)
    if rel.relation_type == RelationType.FF:
        return math.isclose(early.finish[succ], early.finish[pred] + rel.lag)
    if rel.relation_type == RelationType.SF:
        return math.isclose(early.finish[succ], early.start[pred] + rel.lag)
    return False


def critical_paths(network: Network, early: EarlyDates, late: LateDates) -> List[List[int]]:
    """Build sequential representations of all critical paths."""
    unresolved = set(early.unresolved)
    critical_set = {
        act_id
        for act_id, total_float in late.total_float.items()
        if total_float <= 0 and act_id not in unresolved
    }
    if not critical_set:
        return []

    successors: Dict[int, List[int]] = {}
    incoming: Dict[int, int] = {}
    for rel in network.relationships:
        if rel.predecessor_id not in critical_set or rel.successor_id not in critical_set:
            continue
        if _is_driving_link(rel, early):
            successors.setdefault(rel.predecessor_id, []).append(rel.successor_id)
            incoming[rel.successor_id] = incoming.get(rel.successor_id, 0) + 1

    def order_key(act_id: int) -> Tuple[float, int]:
        return (early.start[act_id], act_id)

    for pred_id in successors:
        successors[pred_id] = sorted(set(successors[pred_id]), key=order_key)

    start_nodes = sorted((nid for nid in critical_set if not incoming.get(nid)), key=order_key)
    paths: List[List[int]] = []

    def dfs(node: int, path: List[int]) -> None:
        new_path = path + [node]
        if not successors.get(node):
            paths.append(new_path)
            return
        for succ in successors[node]:
            dfs(succ, new_path)

    for start in start_nodes:
        dfs(start, [])
    return paths


def cyclic_groups(network: Network, activity_ids: List[int]) -> List[List[int]]:
    """Strongly connected groups (and self-links) among the given activities."""
    if not activity_ids:
        return []
    members = set(activity_ids)
    graph = nx.DiGraph()
    graph.add_nodes_from(sorted(members))
    for rel in network.relationships:
        if rel.predecessor_id in members and rel.successor_id in members:
            graph.add_edge(rel.predecessor_id, rel.successor_id)

    groups = [sorted(c) for c in nx.strongly_connected_components(graph) if len(c) > 1]
    grouped = {node for group in groups for node in group}
    groups.extend([node] for node, _ in nx.selfloop_edges(graph) if node not in grouped)
    return sorted(groups)


@dataclass
class ScheduleSnapshot:
    """Computed schedule for every baseline activity, in input order."""

    activities: Tuple[ScheduledActivity, ...] = ()
    project_start: Optional[date] = None
    project_finish: Optional[date] = None
    critical_paths: List[List[int]] = field(default_factory=list)
    unresolved_ids: Tuple[int, ...] = ()
    cycles: List[List[int]] = field(default_factory=list)
    impact: Optional[ScenarioImpact] = None
    calculation_log: List[str] = field(default_factory=list, compare=False)

    def __iter__(self) -> Iterator[ScheduledActivity]:
        return iter(self.activities)

    def __len__(self) -> int:
        return len(self.activities)

    def get(self, activity_id: int) -> Optional[ScheduledActivity]:
        return next((act for act in self.activities if act.id == activity_id), None)

    @property
    def is_partial(self) -> bool:
        """True when part of the network could not be ordered (cycles)."""
        return bool(self.unresolved_ids)

    @property
    def project_duration(self) -> int:
        if self.project_start is None or self.project_finish is None:
            return 0
        return (self.project_finish - self.project_start).days

    @property
    def critical_path(self) -> List[int]:
        return self.critical_paths[0] if self.critical_paths else []

    def to_records(self) -> List[Dict[str, Any]]:
        return [act.to_record() for act in self.activities]

    def get_results_dataframe(self) -> pd.DataFrame:
        """Get calculation results as a pandas DataFrame."""
        data = []
        for act in self.activities:
            data.append(
                {
                    "ID": act.id,
                    "Name": act.name,
                    "Duration": act.duration,
                    "ES": act.early_start,
                    "EF": act.early_finish,
                    "LS": act.late_start,
                    "LF": act.late_finish,
                    "TF": act.total_float,
                    "FF": act.free_float,
                    "Milestone": "Yes" if act.is_milestone else "No",
                    "Critical": "Yes" if act.is_critical else "No",
                }
            )
        return pd.DataFrame(
            data,
            columns=["ID", "Name", "Duration", "ES", "EF", "LS", "LF", "TF", "FF", "Milestone", "Critical"],
        )


def schedule(
    network: Network,
    now: Optional[Clock] = None,
    log: Optional[CalculationLog] = None,
) -> Tuple[EarlyDates, LateDates]:
    """Run the forward and backward passes over a network."""
    log = log if log is not None else CalculationLog()
    epoch = default_epoch(network, now)
    early = forward_pass(network, epoch, log)
    late = backward_pass(network, early, early.project_finish, log)
    return early, late
