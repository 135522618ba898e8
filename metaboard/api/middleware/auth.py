from __future__ import annotations

import hmac
import logging
import re
from typing import Callable, Optional

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from metaboard.api.observability.metrics import AUTHN_DECISIONS_TOTAL, normalize_path
from metaboard.core import config
from metaboard.core.models.session import Session

log = logging.getLogger("metaboard.auth")

SESSION_HEADER = "X-Metaboard-Session"
SESSION_COOKIE = "metaboard.SESSION_ID"
API_KEY_HEADER = "X-Metaboard-Apikey"

RESPONSE_UNAUTHENTIC = {"detail": "Unauthenticated"}

# Only /api/* is protected; these need no session
_PUBLIC_NOAUTH_PATHS = [
    re.compile(r"^/api/health$"),
    re.compile(r"^/api/session(/.*)?$"),
]


def _is_public_noauth_path(path: str) -> bool:
    return any(pat.match(path) for pat in _PUBLIC_NOAUTH_PATHS)


def session_id_from_request(request: Request) -> Optional[str]:
    """The cookie takes precedence over the header."""
    return request.cookies.get(SESSION_COOKIE) or request.headers.get(SESSION_HEADER) or None


def api_key_from_request(request: Request) -> Optional[str]:
    return request.headers.get(API_KEY_HEADER) or None


def api_key_valid(key: Optional[str]) -> bool:
    expected = config.api_key()
    if not key or not expected:
        return False
    return hmac.compare_digest(key, expected)


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Session boundary for /api/*.

    Every request gets request.state.session_id and request.state.api_key.
    Protected requests additionally need a live session; the resolved user id
    lands in request.state.user_id.
    """

    def __init__(self, app, *, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        method = request.method.upper()

        request.state.session_id = session_id_from_request(request)
        request.state.api_key = api_key_from_request(request)
        request.state.user_id = None

        if not self.enabled or not path.startswith("/api/") or _is_public_noauth_path(path):
            return await call_next(request)

        user_id = await run_in_threadpool(Session.user_id_for_session, request.state.session_id)
        if user_id is None:
            AUTHN_DECISIONS_TOTAL.labels(decision="deny", method=method, path=normalize_path(path)).inc()
            log.info("authn deny method=%s path=%s has_session=%s", method, path, bool(request.state.session_id))
            return JSONResponse(status_code=401, content=RESPONSE_UNAUTHENTIC)

        AUTHN_DECISIONS_TOTAL.labels(decision="allow", method=method, path=normalize_path(path)).inc()
        request.state.user_id = user_id
        return await call_next(request)


def should_enable_auth_middleware() -> bool:
    v = (config.env_str("METABOARD_AUTH_ENABLED", "true") or "true").lower()
    return v not in ("0", "false", "no")
