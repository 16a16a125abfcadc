"""Restricted JSON path grammar and its evaluation.

Paths are dot separated segments, optionally prefixed with ``.``::

    0.name            first array item, field ``name``
    items[].version   every item of ``items``, field ``version``
    data.list[2].id   third item of ``data.list``, field ``id``

A wildcard segment fans the current candidates out into several values; the
result collapses to a single value when exactly one candidate survives and
to a list otherwise.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

_WILDCARD = re.compile(r"^(.*)\[\]$")
_INDEXED = re.compile(r"^(.*)\[(\d+)\]$")
_DIGITS = re.compile(r"^\d+$")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass(frozen=True, slots=True)
class Key:
    name: str


@dataclass(frozen=True, slots=True)
class Index:
    key: str
    index: int


@dataclass(frozen=True, slots=True)
class Wildcard:
    key: str


Segment = Union[Key, Index, Wildcard]


def parse_path(expression: str) -> list[Segment]:
    trimmed = expression.strip()
    if trimmed.startswith("."):
        trimmed = trimmed[1:]
    segments: list[Segment] = []
    for raw in trimmed.split("."):
        part = raw.strip()
        if not part:
            continue
        wildcard = _WILDCARD.match(part)
        if wildcard:
            segments.append(Wildcard(wildcard.group(1)))
            continue
        indexed = _INDEXED.match(part)
        if indexed:
            segments.append(Index(indexed.group(1), int(indexed.group(2))))
            continue
        segments.append(Key(part))
    return segments


def child_value(parent: Any, key: str) -> Any:
    if isinstance(parent, list) and _DIGITS.match(key):
        position = int(key)
        return parent[position] if position < len(parent) else MISSING
    if isinstance(parent, dict):
        return parent.get(key, MISSING)
    return MISSING


def _target(value: Any, key: str) -> Any:
    return child_value(value, key) if key else value


def _step(candidates: list[Any], segment: Segment) -> list[Any]:
    found: list[Any] = []
    if isinstance(segment, Wildcard):
        for value in candidates:
            target = _target(value, segment.key)
            if isinstance(target, list):
                found.extend(target)
    elif isinstance(segment, Index):
        for value in candidates:
            target = _target(value, segment.key)
            if isinstance(target, list) and segment.index < len(target):
                found.append(target[segment.index])
    else:
        for value in candidates:
            item = child_value(value, segment.name)
            if item is not MISSING:
                found.append(item)
    return found


def select_json_value(document: Any, expression: str) -> Any:
    """Resolve ``expression`` against ``document``.

    Returns :data:`MISSING` when nothing resolves, the value itself for a
    single result and a list for several. An empty expression selects the
    whole document.
    """

    segments = parse_path(expression)
    if not segments:
        return document
    candidates: list[Any] = [document]
    for segment in segments:
        candidates = _step(candidates, segment)
    if not candidates:
        return MISSING
    return candidates[0] if len(candidates) == 1 else candidates


__all__ = [
    "Index",
    "Key",
    "MISSING",
    "Segment",
    "Wildcard",
    "child_value",
    "parse_path",
    "select_json_value",
]
