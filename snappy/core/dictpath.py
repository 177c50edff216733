# snappy/core/dictpath.py
from __future__ import annotations
from typing import Any
from collections.abc import Mapping

__all__ = ["splitPath", "getByPath"]



def splitPath(path: str) -> list[str]:
    """
    Splits a dotted path where '.' separates segments and backslash escapes
    the next character.

    Examples:
      - dirs.apps          -> ["dirs", "apps"]
      - hooks.by\\.name.x  -> ["hooks", "by.name", "x"]

    Raises ValueError for empty paths, empty segments and trailing escapes.
    """
    if not isinstance(path, str) or not path:
        raise ValueError("Path must be a non-empty string")

    parts: list[str] = []
    curr: list[str] = []
    esc = False
    for ch in path:
        if esc:
            curr.append(ch)
            esc = False
            continue
        if ch == "\\":
            esc = True
            continue
        if ch == ".":
            parts.append("".join(curr))
            curr = []
            continue
        curr.append(ch)
    if esc:
        raise ValueError("Path ends with a dangling escape (trailing backslash)")
    parts.append("".join(curr))

    if any(part == "" for part in parts):
        raise ValueError(f"Path '{path}' contains empty segment(s)")
    return parts



def getByPath(obj: Any, path: str, default: Any | None = None) -> Any:
    """
    Returns the value at `path` inside nested mappings, or `default` when any
    hop is missing, is not a mapping, or the path itself is invalid.
    """
    try:
        parts = splitPath(path)
    except ValueError:
        # Invalid path is treated as "not found"
        return default

    current: Any = obj
    for part in parts:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
            continue
        return default
    return current
