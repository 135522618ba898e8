"""/api/setting endpoints. Superusers only."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from metaboard.core.auth.deps import bind_current_user, require_superuser
from metaboard.core.models import setting

router = APIRouter(
    prefix="/api/setting",
    tags=["setting"],
    dependencies=[Depends(bind_current_user), Depends(require_superuser)],
)


class SettingUpdateRequest(BaseModel):
    value: Optional[Any] = None


def _check_registered(key: str) -> None:
    if setting.registered(key) is None:
        raise HTTPException(status_code=404, detail=f"Unknown setting: {key}")


@router.get("")
def list_settings():
    return setting.all_settings()


@router.get("/{key}")
def get_setting(key: str):
    _check_registered(key)
    return setting.get_stored(key)


@router.put("/{key}")
def put_setting(key: str, req: SettingUpdateRequest):
    _check_registered(key)
    setting.set_setting(key, None if req.value is None else str(req.value))
    return setting.get_stored(key)


@router.delete("/{key}", status_code=204)
def delete_setting(key: str):
    _check_registered(key)
    setting.delete_setting(key)
    return Response(status_code=204)
