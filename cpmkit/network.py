from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .calc_log import CalculationLog
from .models import Activity, Network, Relationship, activities_from_records


def build_network(
    activities: Sequence[Any],
    edges: Iterable[Relationship],
    log: Optional[CalculationLog] = None,
) -> Network:
    """
    Validate activities and edges into a Network.

    Records with a missing or non-numeric id are skipped, as are repeated ids
    (first one wins). Edges whose endpoints are unknown are dropped. Cycles
    are accepted here and handled by the passes.
    """
    log = log if log is not None else CalculationLog()
    log.section("NETWORK BUILD")

    if isinstance(activities, pd.DataFrame):
        activities = activities.to_dict(orient="records")

    coerced = activities_from_records(activities)
    skipped_records = len(activities) - len(coerced)
    if skipped_records:
        log.warn(f"{skipped_records} activity record(s) without a numeric id skipped.")

    nodes: List[Activity] = []
    index: Dict[int, int] = {}
    for act in coerced:
        if act.id in index:
            log.warn(f"Duplicate activity id {act.id} ignored.")
            continue
        index[act.id] = len(nodes)
        nodes.append(act)

    successors: List[List[Relationship]] = [[] for _ in nodes]
    in_degree = [0] * len(nodes)
    dropped = 0
    for rel in edges:
        pred_idx = index.get(rel.predecessor_id)
        succ_idx = index.get(rel.successor_id)
        if pred_idx is None or succ_idx is None:
            dropped += 1
            continue
        successors[pred_idx].append(rel)
        in_degree[succ_idx] += 1

    edge_count = sum(len(rels) for rels in successors)
    log.log(f"Activities: {len(nodes)}")
    log.log(f"Relationships: {edge_count}")
    if dropped:
        log.warn(f"{dropped} relationship(s) reference unknown activities and were dropped.")

    return Network(
        activities=tuple(nodes),
        index=index,
        successors=tuple(tuple(rels) for rels in successors),
        in_degree=tuple(in_degree),
    )
