"""/api/card endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel
from sqlalchemy import delete, or_, select

from metaboard.api.common import check_400, publish, read_check, select_non_none, write_check
from metaboard.api.middleware.response_format import format_response
from metaboard.core import db
from metaboard.core.auth.context import current_user_id
from metaboard.core.auth.deps import bind_current_user
from metaboard.core.models import interface
from metaboard.core.models.card import Card, query_metadata
from metaboard.core.models.card_favorite import CardFavorite
from metaboard.core.models.dashboard_card import DashboardCard
from metaboard.core.models.hydrate import hydrate
from metaboard.core.models.interface import PERMS_NONE

router = APIRouter(prefix="/api/card", tags=["card"], dependencies=[Depends(bind_current_user)])

FILTER_MODES = ("all", "mine", "fav", "database", "table")


class CardCreateRequest(BaseModel):
    name: str
    display: str
    dataset_query: Dict[str, Any]
    visualization_settings: Dict[str, Any] = {}
    public_perms: int = PERMS_NONE
    description: Optional[str] = None


class CardUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    display: Optional[str] = None
    dataset_query: Optional[Dict[str, Any]] = None
    visualization_settings: Optional[Dict[str, Any]] = None
    public_perms: Optional[int] = None


def _cards_for_filter(f: str, model_id: Optional[int]) -> List[Any]:
    uid = current_user_id()
    q = select(Card).order_by(Card.name, Card.id)
    if f == "mine":
        q = q.where(Card.creator_id == uid)
    elif f == "fav":
        q = q.join(CardFavorite, CardFavorite.card_id == Card.id).where(CardFavorite.owner_id == uid)
    elif f == "database":
        q = q.where(Card.database_id == model_id)
    elif f == "table":
        q = q.where(Card.table_id == model_id)
    else:
        q = q.where(or_(Card.creator_id == uid, Card.public_perms > PERMS_NONE))
    with db.session_scope() as s:
        return [c.to_instance() for c in s.scalars(q).all()]


@router.get("")
def list_cards(f: str = "all", model_id: Optional[int] = None):
    """Cards visible to the current user, filtered by mode."""
    if f not in FILTER_MODES:
        raise HTTPException(status_code=400, detail={"errors": {"f": f"f must be one of {', '.join(FILTER_MODES)}"}})
    if f in ("database", "table"):
        check_400(
            model_id is not None,
            {"errors": {"id": f"id is required parameter when filter mode is '{f}'"}},
        )
    cards = [c for c in _cards_for_filter(f, model_id) if interface.can_read(c)]
    return format_response(hydrate(cards, "creator"))


@router.post("")
def create_card(req: CardCreateRequest):
    meta = query_metadata(req.dataset_query)
    with db.session_scope() as s:
        card = Card(
            name=req.name,
            description=req.description,
            display=req.display,
            dataset_query=req.dataset_query,
            visualization_settings=req.visualization_settings,
            public_perms=req.public_perms,
            creator_id=current_user_id(),
            **meta,
        )
        s.add(card)
        s.flush()
        inst = card.to_instance()
    publish("card-create", inst)
    return format_response(inst)


@router.get("/{card_id}")
def get_card(card_id: int):
    card = read_check(Card, card_id)
    return format_response(hydrate(card, "creator", "can_read", "can_write", "dashboard_count"))


@router.put("/{card_id}")
def update_card(card_id: int, req: CardUpdateRequest):
    write_check(Card, card_id)
    changes = select_non_none(req.model_dump(), *CardUpdateRequest.model_fields.keys())
    if "dataset_query" in changes:
        changes.update(query_metadata(changes["dataset_query"]))
    with db.session_scope() as s:
        card = s.get(Card, card_id)
        for k, v in changes.items():
            setattr(card, k, v)
        s.flush()
        inst = card.to_instance()
    publish("card-update", inst)
    return format_response(inst)


@router.delete("/{card_id}", status_code=204)
def delete_card(card_id: int):
    write_check(Card, card_id)
    with db.session_scope() as s:
        s.execute(delete(CardFavorite).where(CardFavorite.card_id == card_id))
        s.execute(delete(DashboardCard).where(DashboardCard.card_id == card_id))
        s.execute(delete(Card).where(Card.id == card_id))
    return Response(status_code=204)


# ------------------------------------------------------------
# Favorites
# ------------------------------------------------------------
@router.get("/{card_id}/favorite")
def get_favorite(card_id: int):
    read_check(Card, card_id)
    return {"favorite": CardFavorite.is_favorite(card_id, current_user_id())}


@router.post("/{card_id}/favorite")
def add_favorite(card_id: int):
    read_check(Card, card_id)
    CardFavorite.add(card_id, current_user_id())
    return {"favorite": True}


@router.delete("/{card_id}/favorite", status_code=204)
def remove_favorite(card_id: int):
    read_check(Card, card_id)
    CardFavorite.remove(card_id, current_user_id())
    return Response(status_code=204)
