"""Path lookup over decoded JSON payloads.

Resolves lodash-style paths such as ``choices[0].delta.content`` or
``data["outputs"].output`` against nested dicts and lists.
"""

from __future__ import annotations

import re
from typing import Any, List

_SEGMENT_SPLIT_RE = re.compile(r"[.\[\]]")
_QUOTES_RE = re.compile(r"['\"]")


def split_path(path: str) -> List[str]:
    """Split a path into its non-empty, dequoted segments."""
    segments = []
    for raw in _SEGMENT_SPLIT_RE.split(path):
        segment = _QUOTES_RE.sub("", raw)
        if segment.strip():
            segments.append(segment)
    return segments


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, dict):
        return current.get(segment)
    if isinstance(current, (list, tuple)):
        try:
            index = int(segment)
        except ValueError:
            return None
        if 0 <= index < len(current):
            return current[index]
        return None
    return None


def get_path(value: Any, path: str, default: Any = None) -> Any:
    """Read ``path`` from ``value``.

    Returns ``default`` when any step is missing or ``None``. An empty path
    returns ``value`` itself.
    """
    current = value
    for segment in split_path(path):
        if current is None:
            return default
        current = _step(current, segment)
    if current is None:
        return default
    return current
