"""Per-request current user.

The auth middleware resolves the session to a user id; the router-level
dependency binds it here so model code (permission checks, hydration
methods) can see who is asking without threading the user through every call.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from metaboard.core.delay import Delay

_CURRENT_USER_ID: ContextVar[Optional[int]] = ContextVar("metaboard_current_user_id", default=None)
_CURRENT_USER: ContextVar[Optional[Delay]] = ContextVar("metaboard_current_user", default=None)


def _user_delay(user_id: Optional[int]) -> Delay:
    def _load() -> Dict[str, Any]:
        if user_id is None:
            return {}
        from metaboard.core.models.user import User

        return User.fetch_one(user_id) or {}

    return Delay(_load)


def bind_current_user(user_id: Optional[int]) -> None:
    _CURRENT_USER_ID.set(user_id)
    _CURRENT_USER.set(_user_delay(user_id))


@contextmanager
def as_user(user_id: Optional[int]) -> Iterator[None]:
    """Temporarily act as user_id (scripts, event workers, tests)."""
    t1 = _CURRENT_USER_ID.set(user_id)
    t2 = _CURRENT_USER.set(_user_delay(user_id))
    try:
        yield
    finally:
        _CURRENT_USER.reset(t2)
        _CURRENT_USER_ID.reset(t1)


def current_user_id() -> Optional[int]:
    return _CURRENT_USER_ID.get()


def current_user() -> Dict[str, Any]:
    d = _CURRENT_USER.get()
    if d is None:
        return {}
    return d.force()
