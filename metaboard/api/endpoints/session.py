"""/api/session endpoints: login, logout, expired-session cleanup."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from metaboard.api.middleware.auth import SESSION_COOKIE, session_id_from_request
from metaboard.core.auth.deps import enforce_api_key
from metaboard.core.models.session import Session
from metaboard.core.models.user import User

log = logging.getLogger("metaboard.auth")

router = APIRouter(prefix="/api/session", tags=["session"])


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("")
def login(req: LoginRequest, response: Response):
    user = User.authenticate(req.email, req.password)
    if user is None:
        log.info("login failed")
        raise HTTPException(status_code=400, detail={"errors": {"password": "did not match stored password"}})
    sid = Session.create_for_user(user["id"])
    response.set_cookie(SESSION_COOKIE, sid, httponly=True)
    return {"id": sid}


@router.delete("/expired", dependencies=[Depends(enforce_api_key)])
def purge_expired_sessions():
    return {"deleted": Session.purge_expired()}


@router.delete("", status_code=204)
def logout(request: Request, session_id: Optional[str] = None):
    sid = session_id or session_id_from_request(request)
    if not sid or not Session.delete_session(sid):
        raise HTTPException(status_code=404, detail="Not found.")
    resp = Response(status_code=204)
    resp.delete_cookie(SESSION_COOKIE)
    return resp
