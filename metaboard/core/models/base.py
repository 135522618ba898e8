from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy import MetaData, inspect, select
from sqlalchemy.orm import DeclarativeBase

from metaboard.core import db
from metaboard.core.auth.context import current_user
from metaboard.core.models.interface import Instance

_naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=_naming_convention)

    # Keys other records can be batch-hydrated with, e.g. {"creator"} lets
    # hydrate() resolve "creator" from "creator_id" with one query.
    hydration_keys: ClassVar[FrozenSet[str]] = frozenset()

    # Columns never copied into instances.
    hidden_fields: ClassVar[Tuple[str, ...]] = ()

    # ------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------
    def to_instance(self) -> Instance:
        data = {
            attr.key: getattr(self, attr.key)
            for attr in inspect(type(self)).column_attrs
            if attr.key not in self.hidden_fields
        }
        return self.post_select(Instance(data, model=type(self)))

    def post_select(self, inst: Instance) -> Instance:
        """Hook for subclasses to add computed or deferred fields."""
        return inst

    # ------------------------------------------------------------
    # Fetch helpers
    # ------------------------------------------------------------
    @classmethod
    def fetch_one(cls, id_: Any) -> Optional[Instance]:
        if id_ is None:
            return None
        with db.session_scope() as s:
            obj = s.get(cls, id_)
            return obj.to_instance() if obj is not None else None

    @classmethod
    def fetch_many(cls, ids: Iterable[Any]) -> List[Instance]:
        ids = [i for i in ids if i is not None]
        if not ids:
            return []
        with db.session_scope() as s:
            rows = s.scalars(select(cls).where(cls.id.in_(ids))).all()
            return [r.to_instance() for r in rows]

    @classmethod
    def exists(cls, id_: Any) -> bool:
        if id_ is None:
            return False
        with db.session_scope() as s:
            return s.get(cls, id_) is not None

    # ------------------------------------------------------------
    # Permissions (overridden by models with public_perms)
    # ------------------------------------------------------------
    @classmethod
    def can_read(cls, obj) -> bool:
        return True

    @classmethod
    def can_write(cls, obj) -> bool:
        return bool(current_user().get("is_superuser"))
