"""
Path extraction over result payloads.

A path is a dot-separated list of segments; each segment is a key optionally
followed by one or more ``[<int>]`` indices, e.g. ``result.items[0].name``
or ``matrix[1][0]``. A segment made only of digits indexes a list directly
(``items.0.name``).

Extraction is a soft operation: a missing key, a non-container intermediate,
a malformed segment or an out-of-range index yields None for the whole path.
It never raises for absent data.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

_SEGMENT_PATTERN = re.compile(r"^(?P<key>[^\[\]]*)(?P<indices>(?:\[\d+\])*)$")
_INDEX_PATTERN = re.compile(r"\[(\d+)\]")


class _Missing:
    pass


_MISSING = _Missing()


def parse_path(path: str) -> list[str | int] | None:
    """
    Split a path into keys and integer indices.

    Returns:
        Steps such as ``["result", "items", 0, "name"]``, or None if any
        segment is malformed
    """
    steps: list[str | int] = []
    for segment in path.split("."):
        match = _SEGMENT_PATTERN.match(segment.strip())
        if match is None:
            return None
        key = match.group("key")
        indices = [int(i) for i in _INDEX_PATTERN.findall(match.group("indices"))]
        if not key and not indices:
            return None
        if key:
            steps.append(key)
        steps.extend(indices)
    return steps


def _step(current: Any, step: str | int) -> Any:
    if isinstance(current, Mapping):
        if isinstance(step, int):
            step = str(step)
        return current.get(step, _MISSING)

    if isinstance(current, Sequence) and not isinstance(current, str | bytes):
        if isinstance(step, str):
            if not step.isdigit():
                return _MISSING
            step = int(step)
        if 0 <= step < len(current):
            return current[step]
        return _MISSING

    return _MISSING


def extract_value_from_path(value: Any, path: str | None) -> Any:
    """
    Walk ``value`` along ``path``.

    Examples:
        extract_value_from_path({"result": {"items": [{"id": 1}]}}, "result.items[0].id")
        # 1
        extract_value_from_path({"result": {}}, "result.missing.id")
        # None

    Args:
        value: Payload to walk (dicts and lists, as produced by JSON)
        path: Dotted path; empty or None returns ``value`` itself

    Returns:
        The addressed value, or None if any step fails
    """
    if not path:
        return value

    steps = parse_path(path)
    if steps is None:
        return None

    current = value
    for step in steps:
        current = _step(current, step)
        if current is _MISSING or current is None:
            return None
    return current
