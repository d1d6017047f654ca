from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .dates import is_missing, safe_float
from .models import RelationType, Relationship
from .tokens import split_predecessors

RELATIONSHIP_TABLES = (
    "Relationships",
    "Links",
    "Logic",
    "CPM_Relationships",
    "Predecessor_Successor",
)

PRED_ID_FIELDS = ("PredID", "Predecessor", "Pred", "From", "Pred ID")
SUCC_ID_FIELDS = ("SuccID", "Successor", "Succ", "To", "Succ ID")
REL_TYPE_FIELDS = ("RelType", "Type")
LAG_FIELDS = ("Lag_d", "Lag")

ACTIVITY_ID_FIELDS = ("ActivityID", "ID", "id", "Unique ID", "UniqueID")
PREDECESSOR_FIELDS = ("Predecessors", "Predecessor", "Links", "Dependencies", "predecessors")

Rows = Union[pd.DataFrame, Sequence[Mapping[str, Any]]]


def _first(row: Mapping[str, Any], fields: Iterable[str]) -> Any:
    for name in fields:
        value = row.get(name)
        if not is_missing(value) and value != "":
            return value
    return None


def _iter_rows(rows: Rows) -> Iterable[Mapping[str, Any]]:
    if isinstance(rows, pd.DataFrame):
        return rows.to_dict(orient="records")
    return rows


def read_relationship_table(tables: Optional[Mapping[str, Rows]]) -> List[Relationship]:
    """
    Read edges from the first dedicated relationship table.

    Args:
        tables: Table name -> rows, e.g. ``pd.read_excel(path, sheet_name=None)``

    Returns:
        Edges in row order; rows without a numeric predecessor and successor
        are discarded.
    """
    if not tables:
        return []
    hit = next((name for name in tables if name in RELATIONSHIP_TABLES), None)
    if hit is None:
        return []

    edges: List[Relationship] = []
    for row in _iter_rows(tables[hit]):
        pred_id = safe_float(_first(row, PRED_ID_FIELDS))
        succ_id = safe_float(_first(row, SUCC_ID_FIELDS))
        if pred_id is None or succ_id is None:
            continue
        rel_type = RelationType.parse(_first(row, REL_TYPE_FIELDS)) or RelationType.FS
        lag = safe_float(_first(row, LAG_FIELDS)) or 0
        if float(lag).is_integer():
            lag = int(lag)
        edges.append(Relationship(int(pred_id), int(succ_id), rel_type, lag))
    return edges


def _predecessor_text(row: Mapping[str, Any]) -> Any:
    text = _first(row, PREDECESSOR_FIELDS)
    if text is not None:
        return text
    for key, value in row.items():
        if isinstance(key, str) and isinstance(value, str) and re.search("pred", key, re.I):
            if value:
                return value
    return None


def build_links_from_predecessors(records: Rows) -> List[Relationship]:
    """Parse per-activity predecessor strings such as ``"205FS+3, 130-2"``."""
    edges: List[Relationship] = []
    for row in _iter_rows(records):
        succ_id = safe_float(_first(row, ACTIVITY_ID_FIELDS))
        if succ_id is None:
            continue
        text = _predecessor_text(row)
        if not text:
            continue
        edges.extend(split_predecessors(text, int(succ_id)))
    return edges


def extract_relationships(
    tables: Optional[Mapping[str, Rows]] = None,
    records: Rows = (),
) -> List[Relationship]:
    """Prefer a dedicated relationship table, else parse predecessor columns."""
    edges = read_relationship_table(tables)
    if not edges:
        edges = build_links_from_predecessors(records)
    return edges
