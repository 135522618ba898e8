from __future__ import annotations

from typing import Any

from metaboard.core.delay import Delay

_DROP = object()


def _strip(obj: Any) -> Any:
    if isinstance(obj, Delay):
        return obj.force() if obj.realized else _DROP
    if callable(obj):
        return _DROP
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            v = _strip(v)
            if v is not _DROP:
                out[k] = v
        return out
    if isinstance(obj, (list, tuple)):
        return [v for v in (_strip(x) for x in obj) if v is not _DROP]
    return obj


def format_response(obj: Any) -> Any:
    """
    Recursively remove functions and unforced Delays from a response body.
    Realized Delays are replaced by their values.
    """
    out = _strip(obj)
    return None if out is _DROP else out
