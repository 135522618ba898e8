from __future__ import annotations

from fastapi import APIRouter, Depends

from metaboard.api.common import check_404, read_check
from metaboard.api.middleware.response_format import format_response
from metaboard.core.auth.context import current_user_id
from metaboard.core.auth.deps import bind_current_user
from metaboard.core.models.user import User

router = APIRouter(prefix="/api/user", tags=["user"], dependencies=[Depends(bind_current_user)])


@router.get("/current")
def current():
    return format_response(check_404(User.fetch_one(current_user_id())))


@router.get("/{user_id}")
def get_user(user_id: int):
    return format_response(read_check(User, user_id))
