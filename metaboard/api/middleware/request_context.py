from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from metaboard.api.observability.metrics import (
    HTTP_REQUESTS_TOTAL,
    HTTP_REQUEST_DURATION_SECONDS,
    normalize_path,
)

log = logging.getLogger("metaboard.request")

REQUEST_ID_HEADER = "X-Request-Id"

# Client-supplied ids are echoed back, so keep them to a safe alphabet.
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def request_id_for(request: Request) -> str:
    """The caller's X-Request-Id when it looks sane, else a fresh uuid."""
    rid: Optional[str] = request.headers.get(REQUEST_ID_HEADER)
    if rid and _REQUEST_ID_RE.match(rid):
        return rid
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with request.state.request_id (echoed as X-Request-Id),
    records request count and latency, and writes one log line per /api call
    with the resolved user id. Session ids and API keys never reach the log.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request_id_for(request)
        request.state.request_id = rid

        start = time.perf_counter()
        resp = await call_next(request)
        elapsed = time.perf_counter() - start

        resp.headers[REQUEST_ID_HEADER] = rid

        path = normalize_path(request.url.path)
        method = request.method.upper()
        HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=str(resp.status_code)).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(elapsed)

        if request.url.path.startswith("/api/"):
            log.info(
                "%s",
                {
                    "event": "request",
                    "request_id": rid,
                    "method": method,
                    "path": request.url.path,
                    "status_code": resp.status_code,
                    "duration_ms": int(elapsed * 1000),
                    "user_id": getattr(request.state, "user_id", None),
                    "has_session": bool(getattr(request.state, "session_id", None)),
                },
            )
        return resp


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds conservative browser security headers; off outside prod unless configured."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
    }

    def __init__(self, app, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        resp = await call_next(request)
        if self.enabled:
            for k, v in self.HEADERS.items():
                resp.headers.setdefault(k, v)
        return resp
