"""Shared model behaviour: instances, permissions, fetch helpers."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from metaboard.core.auth.context import current_user, current_user_id

# public_perms values
PERMS_NONE = 0
PERMS_READ = 1
PERMS_READWRITE = 2


class Instance(dict):
    """
    A record produced by a model.

    Behaves exactly like a dict (and serializes like one) but remembers the
    model class it came from, so permission checks and hydration can dispatch
    on it. Derived copies keep the association.
    """

    __slots__ = ("model",)

    def __init__(self, *args: Any, model: Optional[type] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.model = model

    def assoc(self, key: str, value: Any) -> "Instance":
        new = Instance(self, model=self.model)
        new[key] = value
        return new

    def merge(self, other: Optional[Mapping[str, Any]]) -> "Instance":
        new = Instance(self, model=self.model)
        if other:
            new.update(other)
        return new

    def __reduce__(self):
        return (_rebuild_instance, (dict(self), self.model))


def _rebuild_instance(data: dict, model: Optional[type]) -> Instance:
    return Instance(data, model=model)


def model_of(obj: Any) -> Optional[type]:
    return getattr(obj, "model", None) if isinstance(obj, Instance) else None


def can_read(obj: Any) -> bool:
    model = model_of(obj)
    if model is None:
        raise TypeError(f"Cannot check read permissions on {type(obj).__name__} without a model")
    return bool(model.can_read(obj))


def can_write(obj: Any) -> bool:
    model = model_of(obj)
    if model is None:
        raise TypeError(f"Cannot check write permissions on {type(obj).__name__} without a model")
    return bool(model.can_write(obj))


def _is_superuser() -> bool:
    return bool(current_user().get("is_superuser"))


class PublicPermsMixin:
    """
    Permissions driven by ``public_perms`` and ``creator_id``.

    Superusers and the creator can always read and write; everybody else gets
    what public_perms grants.
    """

    @classmethod
    def _owner_or_super(cls, obj: Mapping[str, Any]) -> bool:
        uid = current_user_id()
        if uid is not None and obj.get("creator_id") == uid:
            return True
        return _is_superuser()

    @classmethod
    def can_read(cls, obj: Mapping[str, Any]) -> bool:
        if cls._owner_or_super(obj):
            return True
        return (obj.get("public_perms") or PERMS_NONE) >= PERMS_READ

    @classmethod
    def can_write(cls, obj: Mapping[str, Any]) -> bool:
        if cls._owner_or_super(obj):
            return True
        return (obj.get("public_perms") or PERMS_NONE) >= PERMS_READWRITE
