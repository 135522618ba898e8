from __future__ import annotations

import threading
from typing import Any, Callable


_UNSET = object()


class Delay:
    """
    Deferred value.

    Wraps a zero-argument callable. The first call to force() evaluates it and
    caches the result; later calls return the cached value. Safe to force
    from several threads.
    """

    __slots__ = ("_fn", "_value", "_lock")

    def __init__(self, fn: Callable[[], Any]):
        self._fn = fn
        self._value = _UNSET
        self._lock = threading.Lock()

    @property
    def realized(self) -> bool:
        return self._value is not _UNSET

    def force(self) -> Any:
        if self._value is _UNSET:
            with self._lock:
                if self._value is _UNSET:
                    self._value = self._fn()
                    self._fn = None
        return self._value

    def __repr__(self) -> str:
        if self.realized:
            return f"<Delay realized={self._value!r}>"
        return "<Delay pending>"
