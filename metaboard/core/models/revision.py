from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, delete, select
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core import db
from metaboard.core.delay import Delay
from metaboard.core.models.base import Base, utc_now
from metaboard.core.models.interface import Instance

log = logging.getLogger("metaboard.revision")

MAX_REVISIONS = 15


class Revision(Base):
    __tablename__ = "revisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    model: Mapped[str] = mapped_column(String(64), index=True)
    model_id: Mapped[int] = mapped_column(Integer, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    object: Mapped[Dict[str, Any]] = mapped_column(JSON)
    is_creation: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utc_now)


def serialize_instance(obj: Any) -> Any:
    """JSON-safe copy of obj: Delays and other callables dropped, datetimes as ISO strings."""
    if isinstance(obj, dict):
        return {k: serialize_instance(v) for k, v in obj.items() if not callable(v) and not isinstance(v, Delay)}
    if isinstance(obj, (list, tuple)):
        return [serialize_instance(v) for v in obj]
    if isinstance(obj, datetime):
        return obj.isoformat()
    return obj


def push_revision(
    *,
    model: type,
    id: int,
    object: Optional[Dict[str, Any]],
    user_id: Optional[int],
    is_creation: bool = False,
) -> Optional[Instance]:
    """
    Record a revision of object and keep only the newest MAX_REVISIONS for
    that (model, id). Returns the stored revision, or None if the object no
    longer exists.
    """
    if object is None:
        log.info("skip revision for missing object model=%s id=%s", model.__name__, id)
        return None
    name = model.__name__.lower()
    with db.session_scope() as s:
        rev = Revision(
            model=name,
            model_id=id,
            user_id=user_id,
            object=serialize_instance(object),
            is_creation=bool(is_creation),
            timestamp=utc_now(),
        )
        s.add(rev)
        s.flush()

        stale = s.scalars(
            select(Revision.id)
            .where(Revision.model == name, Revision.model_id == id)
            .order_by(Revision.id.desc())
            .offset(MAX_REVISIONS)
        ).all()
        if stale:
            s.execute(delete(Revision).where(Revision.id.in_(stale)))
        return rev.to_instance()


def revisions(model: type, id: int) -> List[Instance]:
    """Revisions for an object, newest first."""
    with db.session_scope() as s:
        rows = s.scalars(
            select(Revision)
            .where(Revision.model == model.__name__.lower(), Revision.model_id == id)
            .order_by(Revision.id.desc())
        ).all()
        return [r.to_instance() for r in rows]
