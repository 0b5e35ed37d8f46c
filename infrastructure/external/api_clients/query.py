"""
Query-string encoding: flatten any nested structure into ordered (path, value) pairs.

Path rules:
- list items append ``[index]``
- object members append ``.key`` (bare ``key`` at the root)
- None values are dropped
- excluded root keys are skipped whole
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple
from pydantic import BaseModel


QueryPairs = List[Tuple[str, str]]


def _to_plain(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_none=True, by_alias=True)
    return data


def _scalar_to_str(value: Any) -> str:
    # Culqi expects lowercase booleans
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def encode_query_params(
    data: Any,
    root: Optional[str] = None,
    exclude: Optional[Iterable[str]] = None,
) -> QueryPairs:
    """Pairs come out in traversal order: dict insertion order, then list index."""
    excluded = set(exclude or ())
    pairs: QueryPairs = []

    def _append(value: Any, path: str) -> None:
        if path in excluded:
            return
        value = _to_plain(value)
        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                _append(item, f"{path}[{index}]")
        elif isinstance(value, dict):
            for key, item in value.items():
                _append(item, f"{path}.{key}" if path else str(key))
        elif value is not None:
            pairs.append((path, _scalar_to_str(value)))

    _append(data, root or "")
    return pairs
