"""Helpers shared by API endpoints."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status

from metaboard.api.observability.metrics import EVENTS_PUBLISHED_TOTAL
from metaboard.core import events
from metaboard.core.auth.context import current_user_id
from metaboard.core.models import interface
from metaboard.core.models.interface import Instance


def check_404(obj: Optional[Instance]) -> Instance:
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found.")
    return obj


def check_403(allowed: bool) -> None:
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You don't have permissions to do that.")


def check_400(ok: bool, detail: Any = "Invalid request.") -> None:
    if not ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def read_check(model: type, id_: Any) -> Instance:
    obj = check_404(model.fetch_one(id_))
    check_403(interface.can_read(obj))
    return obj


def write_check(model: type, id_: Any) -> Instance:
    obj = check_404(model.fetch_one(id_))
    check_403(interface.can_write(obj))
    return obj


def select_non_none(body: Mapping[str, Any], *keys: str) -> Dict[str, Any]:
    return {k: body[k] for k in keys if body.get(k) is not None}


def publish(topic: str, item: Mapping[str, Any]) -> Any:
    """Publish item for topic, tagging the acting user."""
    payload = dict(item)
    payload.setdefault("actor_id", current_user_id())
    EVENTS_PUBLISHED_TOTAL.labels(topic=topic).inc()
    return events.publish_event(topic, payload)
