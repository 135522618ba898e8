from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from metaboard.api.common import read_check
from metaboard.api.middleware.response_format import format_response
from metaboard.core.auth.deps import bind_current_user
from metaboard.core.models.card import Card
from metaboard.core.models.dashboard import Dashboard
from metaboard.core.models.hydrate import hydrate
from metaboard.core.models.revision import revisions

router = APIRouter(prefix="/api/revision", tags=["revision"], dependencies=[Depends(bind_current_user)])

_ENTITIES = {
    "card": Card,
    "dashboard": Dashboard,
}


@router.get("")
def list_revisions(entity: str, id: int):
    """Revision history of a card or dashboard, newest first, with the user who made each one."""
    model = _ENTITIES.get(entity)
    if model is None:
        raise HTTPException(status_code=400, detail={"errors": {"entity": "entity must be one of card, dashboard"}})
    read_check(model, id)
    return format_response(hydrate(revisions(model, id), "user"))
