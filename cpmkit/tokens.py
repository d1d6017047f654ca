"""
Compact precedence tokens.

A token names one predecessor of the activity that owns it::

    "205"       -> 205 FS, lag 0
    "205FS+3"   -> 205 FS, lag +3
    "130-2"     -> 130 FS, lag -2 (lead)
    "77 ss + 5" -> 77 SS, lag +5

Malformed tokens never raise; they parse to None and are skipped.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .models import RelationType, Relationship

_SEPARATORS = re.compile(r"[,;]+")


def parse_link_token(token: object, successor_id: int) -> Optional[Relationship]:
    if token is None or isinstance(token, bool):
        return None
    text = str(token).strip()

    i = 0
    while i < len(text) and "0" <= text[i] <= "9":
        i += 1
    if i == 0:
        return None
    predecessor_id = int(text[:i])

    rest = text[i:].strip()
    relation_type = RelationType.parse(rest[:2]) if len(rest) >= 2 else None
    if relation_type is None:
        relation_type = RelationType.FS
    else:
        rest = rest[2:].strip()

    lag = 0
    plus, minus = rest.find("+"), rest.find("-")
    if plus != -1 and (minus == -1 or plus < minus):
        pos, sign = plus, 1
    elif minus != -1:
        pos, sign = minus, -1
    else:
        pos, sign = -1, 1

    if pos != -1:
        j = pos + 1
        while j < len(rest) and rest[j] == " ":
            j += 1
        k = j
        while k < len(rest) and "0" <= rest[k] <= "9":
            k += 1
        if k > j:
            lag = sign * int(rest[j:k])

    return Relationship(predecessor_id, int(successor_id), relation_type, lag)


def split_predecessors(text: object, successor_id: int) -> List[Relationship]:
    """Parse a comma/semicolon separated predecessor list."""
    if text is None:
        return []
    relationships = []
    for piece in _SEPARATORS.split(str(text)):
        rel = parse_link_token(piece, successor_id)
        if rel is not None:
            relationships.append(rel)
    return relationships
