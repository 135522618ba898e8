"""/api/dash endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy import delete, or_, select

from metaboard.api.common import check_400, publish, read_check, select_non_none, write_check
from metaboard.api.middleware.response_format import format_response
from metaboard.core import db
from metaboard.core.auth.context import current_user_id
from metaboard.core.auth.deps import bind_current_user
from metaboard.core.models import interface
from metaboard.core.models.card import Card
from metaboard.core.models.dashboard import Dashboard
from metaboard.core.models.dashboard_card import DashboardCard
from metaboard.core.models.hydrate import hydrate
from metaboard.core.models.interface import PERMS_NONE

router = APIRouter(prefix="/api/dash", tags=["dash"], dependencies=[Depends(bind_current_user)])


class DashboardCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None
    public_perms: int = PERMS_NONE


class DashboardUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    public_perms: Optional[int] = None


class AddCardRequest(BaseModel):
    cardId: int


class CardPosition(BaseModel):
    card_id: int
    sizeX: int
    sizeY: int
    row: int
    col: int


class RepositionRequest(BaseModel):
    cards: List[CardPosition] = Field(default_factory=list)


@router.get("")
def list_dashboards(f: str = "all"):
    uid = current_user_id()
    q = select(Dashboard).order_by(Dashboard.name, Dashboard.id)
    if f == "mine":
        q = q.where(Dashboard.creator_id == uid)
    elif f == "all":
        q = q.where(or_(Dashboard.creator_id == uid, Dashboard.public_perms > PERMS_NONE))
    else:
        raise HTTPException(status_code=400, detail={"errors": {"f": "f must be one of all, mine"}})
    with db.session_scope() as s:
        dashes = [d.to_instance() for d in s.scalars(q).all()]
    dashes = [d for d in dashes if interface.can_read(d)]
    return format_response(hydrate(dashes, "creator"))


@router.post("")
def create_dashboard(req: DashboardCreateRequest):
    with db.session_scope() as s:
        dash = Dashboard(
            name=req.name,
            description=req.description,
            public_perms=req.public_perms,
            creator_id=current_user_id(),
        )
        s.add(dash)
        s.flush()
        inst = dash.to_instance()
    publish("dashboard-create", inst)
    return format_response(inst)


@router.get("/{dash_id}")
def get_dashboard(dash_id: int):
    dash = read_check(Dashboard, dash_id)
    dash = hydrate(dash, "creator", ["ordered_cards", ["card", "creator"]], "can_read", "can_write")
    return format_response({"dashboard": dash})


@router.put("/{dash_id}")
def update_dashboard(dash_id: int, req: DashboardUpdateRequest):
    write_check(Dashboard, dash_id)
    changes = select_non_none(req.model_dump(), "name", "description", "public_perms")
    with db.session_scope() as s:
        dash = s.get(Dashboard, dash_id)
        for k, v in changes.items():
            setattr(dash, k, v)
        s.flush()
        inst = dash.to_instance()
    publish("dashboard-update", inst)
    return format_response(inst)


@router.delete("/{dash_id}", status_code=204)
def delete_dashboard(dash_id: int):
    write_check(Dashboard, dash_id)
    with db.session_scope() as s:
        s.execute(delete(DashboardCard).where(DashboardCard.dashboard_id == dash_id))
        s.execute(delete(Dashboard).where(Dashboard.id == dash_id))
    return Response(status_code=204)


# ------------------------------------------------------------
# Dashboard cards
# ------------------------------------------------------------
@router.post("/{dash_id}/cards")
def add_card(dash_id: int, req: AddCardRequest):
    write_check(Dashboard, dash_id)
    check_400(Card.exists(req.cardId), "Card does not exist.")
    with db.session_scope() as s:
        dashcard = DashboardCard(dashboard_id=dash_id, card_id=req.cardId)
        s.add(dashcard)
        s.flush()
        inst = dashcard.to_instance()
    publish("dashboard-add-cards", {"id": dash_id, "dashcards": [inst]})
    return format_response(inst)


@router.delete("/{dash_id}/cards", status_code=204)
def remove_card(dash_id: int, dashcardId: int):
    write_check(Dashboard, dash_id)
    with db.session_scope() as s:
        res = s.execute(
            delete(DashboardCard).where(DashboardCard.id == dashcardId, DashboardCard.dashboard_id == dash_id)
        )
        removed = res.rowcount or 0
    if not removed:
        raise HTTPException(status_code=404, detail="Not found.")
    publish("dashboard-remove-cards", {"id": dash_id, "dashcards": [{"id": dashcardId}]})
    return Response(status_code=204)


@router.post("/{dash_id}/reposition")
def reposition_cards(dash_id: int, req: RepositionRequest):
    write_check(Dashboard, dash_id)
    with db.session_scope() as s:
        for pos in req.cards:
            dashcard = s.scalars(
                select(DashboardCard).where(
                    DashboardCard.card_id == pos.card_id,
                    DashboardCard.dashboard_id == dash_id,
                )
            ).first()
            if dashcard is None:
                continue
            dashcard.sizeX = pos.sizeX
            dashcard.sizeY = pos.sizeY
            dashcard.row = pos.row
            dashcard.col = pos.col
    publish("dashboard-reposition-cards", {"id": dash_id, "dashcards": [p.model_dump() for p in req.cards]})
    return {"status": "ok"}
