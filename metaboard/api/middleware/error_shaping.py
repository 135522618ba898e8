from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from metaboard.api.observability.metrics import UNHANDLED_ERRORS_TOTAL, normalize_path

log = logging.getLogger("metaboard.errors")

RESPONSE_INTERNAL_ERROR = {"detail": "Internal Server Error"}


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware.

    Unhandled exceptions become a bare 500; the traceback goes to the server
    log together with the request id and the acting user, never to the client.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            state = request.state
            rid = getattr(state, "request_id", None) or request.headers.get("x-request-id")
            UNHANDLED_ERRORS_TOTAL.labels(
                method=request.method.upper(),
                path=normalize_path(request.url.path),
                exception=type(e).__name__,
            ).inc()
            log.exception(
                "unhandled error rid=%s user_id=%s method=%s path=%s",
                rid,
                getattr(state, "user_id", None),
                request.method,
                request.url.path,
            )
            payload = dict(RESPONSE_INTERNAL_ERROR)
            if rid:
                payload["request_id"] = rid
            return JSONResponse(status_code=500, content=payload)
