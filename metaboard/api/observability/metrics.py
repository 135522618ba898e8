from __future__ import annotations

import re
from prometheus_client import Counter, Histogram


def normalize_path(path: str) -> str:
    """Reduce high-cardinality paths for metrics labels."""
    p = path or "/"

    # UUID-ish (session ids)
    p = re.sub(r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}", "/:uuid", p)
    # ints
    p = re.sub(r"/\d+", "/:id", p)
    # setting keys
    p = re.sub(r"^(/api/setting)/[^/]+$", r"\1/:key", p)

    return p


HTTP_REQUESTS_TOTAL = Counter(
    "metaboard_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "metaboard_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

AUTHN_DECISIONS_TOTAL = Counter(
    "metaboard_authn_decisions_total",
    "Authentication decisions",
    ["decision", "method", "path"],
)

EVENTS_PUBLISHED_TOTAL = Counter(
    "metaboard_events_published_total",
    "Events published by API handlers",
    ["topic"],
)

UNHANDLED_ERRORS_TOTAL = Counter(
    "metaboard_unhandled_errors_total",
    "Requests that ended in an unhandled exception",
    ["method", "path", "exception"],
)
