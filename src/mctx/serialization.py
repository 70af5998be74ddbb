"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Safe JSON serialisation of handler results.
"""

from __future__ import annotations

import base64
import dataclasses
import datetime as dt
import json
from typing import Any

from pydantic import BaseModel

CIRCULAR_MARKER = "[Circular]"


def _to_jsonable(value: Any, ancestors: set[int]) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")

    marker = id(value)
    if marker in ancestors:
        return CIRCULAR_MARKER

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}

    if isinstance(value, dict):
        ancestors.add(marker)
        try:
            return {str(k): _to_jsonable(v, ancestors) for k, v in value.items()}
        finally:
            ancestors.discard(marker)

    if isinstance(value, (list, tuple, set, frozenset)):
        ancestors.add(marker)
        try:
            return [_to_jsonable(item, ancestors) for item in value]
        finally:
            ancestors.discard(marker)

    return str(value)


def to_jsonable(value: Any) -> Any:
    """Convert ``value`` into plain JSON-compatible data."""
    return _to_jsonable(value, set())


def safe_serialize(value: Any) -> str:
    """Serialise ``value`` to JSON text without raising on cycles or odd types.

    Circular references become ``"[Circular]"``, temporal values become ISO
    strings, bytes become base64, and anything else unknown falls back to
    ``str()``.
    """
    return json.dumps(to_jsonable(value), ensure_ascii=False)
