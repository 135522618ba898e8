from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from metaboard import __version__
from metaboard.core import config, db
from metaboard.core.events.revision import events_init, events_shutdown

from metaboard.api.endpoints import card, dash, health, revision, session, setting, user
from metaboard.api.endpoints import metrics_export

from metaboard.api.middleware.auth import AuthMiddleware, should_enable_auth_middleware
from metaboard.api.middleware.error_shaping import SafeErrorMiddleware
from metaboard.api.middleware.request_context import RequestContextMiddleware, SecurityHeadersMiddleware

log = logging.getLogger("metaboard.app")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    db.create_all()
    events_init()
    log.info("metaboard started env=%s", config.app_env())
    try:
        yield
    finally:
        events_shutdown()


app = FastAPI(
    title="Metaboard API",
    version=__version__,
    lifespan=lifespan,
)

# ------------------------------------------------------------
# Middleware stack (ORDER MATTERS)
# Starlette reverses add_middleware order: the LAST call is the OUTERMOST wrapper.
# Runtime order (outermost -> innermost):
#   SafeErrorMiddleware -> CORSMiddleware -> SecurityHeaders -> RequestContext -> Auth -> handler
# ------------------------------------------------------------

# Auth boundary (innermost; needs request_id from RequestContext for logs)
app.add_middleware(AuthMiddleware, enabled=should_enable_auth_middleware())

# Request context (request_id + metrics + request log line)
app.add_middleware(RequestContextMiddleware)

# Security headers (on in prod by default)
app.add_middleware(
    SecurityHeadersMiddleware,
    enabled=config.env_bool("METABOARD_SECURITY_HEADERS_ENABLED", config.is_prod()),
)

# CORS second-to-last so OPTIONS preflight is handled outside Auth
_cors_origins_raw = config.env_str("METABOARD_CORS_ORIGINS", "") or ""
_cors_origins = [o.strip() for o in _cors_origins_raw.split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# SafeErrorMiddleware LAST = outermost (catches all exceptions from inner middleware)
app.add_middleware(SafeErrorMiddleware)


# ------------------------------------------------------------
# Routes
# ------------------------------------------------------------
app.include_router(health.router)
app.include_router(session.router)
app.include_router(user.router)
app.include_router(card.router)
app.include_router(dash.router)
app.include_router(setting.router)
app.include_router(revision.router)
app.include_router(metrics_export.router)


# Must stay last: anything under /api not matched above
@app.api_route("/api/{rest:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"], include_in_schema=False)
def not_implemented(request: Request, rest: str):
    return JSONResponse(
        status_code=404,
        content={"detail": f"{request.method.upper()} {request.url.path} is not yet implemented."},
    )
