"""FastAPI dependencies for the current user and API keys."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from metaboard.core.auth.context import bind_current_user as _bind, current_user


async def bind_current_user(request: Request) -> None:
    """
    Router dependency: make request.state.user_id the current user.

    Async on purpose, so the binding happens in the request task and is
    inherited by sync endpoints running in the threadpool.
    """
    _bind(getattr(request.state, "user_id", None))


async def require_superuser() -> dict:
    user = current_user()
    if not user.get("is_superuser"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You don't have permissions to do that.")
    return user


async def enforce_api_key(request: Request) -> None:
    from metaboard.api.middleware.auth import api_key_valid

    if not api_key_valid(getattr(request.state, "api_key", None)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
