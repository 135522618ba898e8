from __future__ import annotations

from datetime import datetime

from starlette.requests import Request

from metaboard.api.middleware.auth import (
    API_KEY_HEADER,
    RESPONSE_UNAUTHENTIC,
    SESSION_COOKIE,
    SESSION_HEADER,
    api_key_from_request,
    api_key_valid,
    session_id_from_request,
)
from metaboard.api.middleware.response_format import format_response
from metaboard.core import db
from metaboard.core.auth.context import as_user, current_user, current_user_id
from metaboard.core.delay import Delay
from metaboard.core.models import Session


def _request(headers=None, cookies=None) -> Request:
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    if cookies:
        raw.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode("latin-1")))
    return Request({"type": "http", "method": "GET", "path": "/anyurl", "headers": raw, "query_string": b""})


def _insert_session(user_id: int, created_at: datetime) -> str:
    sid = f"session-{user_id}-{created_at.timestamp()}"
    with db.session_scope() as s:
        s.add(Session(id=sid, user_id=user_id, created_at=created_at))
    return sid


# ------------------------------------------------------------
# Session id extraction
# ------------------------------------------------------------
def test_no_session_id():
    assert session_id_from_request(_request()) is None


def test_session_id_from_header():
    assert session_id_from_request(_request(headers={SESSION_HEADER: "foobar"})) == "foobar"


def test_session_id_from_cookie():
    assert session_id_from_request(_request(cookies={SESSION_COOKIE: "cookie-session"})) == "cookie-session"


def test_cookie_takes_precedence_over_header():
    req = _request(headers={SESSION_HEADER: "foobar"}, cookies={SESSION_COOKIE: "cookie-session"})
    assert session_id_from_request(req) == "cookie-session"


# ------------------------------------------------------------
# Session validity
# ------------------------------------------------------------
def test_valid_session_resolves_user(users):
    sid = Session.create_for_user(users["rasta"]["id"])
    assert Session.user_id_for_session(sid) == users["rasta"]["id"]


def test_expired_session_is_rejected(users):
    sid = _insert_session(users["rasta"]["id"], datetime(1970, 1, 2))
    assert Session.user_id_for_session(sid) is None


def test_inactive_user_session_is_rejected(users):
    sid = Session.create_for_user(users["trashbird"]["id"])
    assert Session.user_id_for_session(sid) is None


def test_unknown_session_is_rejected(users):
    assert Session.user_id_for_session("nope") is None
    assert Session.user_id_for_session(None) is None


def test_api_requires_session(client, users):
    r = client.get("/api/user/current")
    assert r.status_code == 401
    assert r.json() == RESPONSE_UNAUTHENTIC


def test_api_with_expired_session(client, users):
    sid = _insert_session(users["rasta"]["id"], datetime(1970, 1, 2))
    r = client.get("/api/user/current", headers={SESSION_HEADER: sid})
    assert r.status_code == 401


def test_api_binds_current_user(user_client, users):
    r = user_client("rasta").get("/api/user/current")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["id"] == users["rasta"]["id"]
    assert body["email"] == "rasta@metaboard.test"
    assert "password" not in body


def test_session_age_is_configurable(monkeypatch, users):
    sid = Session.create_for_user(users["rasta"]["id"])
    with db.session_scope() as s:
        s.get(Session, sid).created_at = datetime(2000, 1, 1)
    assert Session.user_id_for_session(sid) is None
    monkeypatch.setenv("METABOARD_SESSION_AGE_MINUTES", str(100 * 365 * 24 * 60))
    assert Session.user_id_for_session(sid) == users["rasta"]["id"]


# ------------------------------------------------------------
# Current user binding
# ------------------------------------------------------------
def test_bound_user(users):
    with as_user(users["rasta"]["id"]):
        assert current_user_id() == users["rasta"]["id"]
        assert current_user()["email"] == "rasta@metaboard.test"
    assert current_user_id() is None


def test_bound_unknown_user(users):
    with as_user(0):
        assert current_user_id() == 0
        assert current_user() == {}


# ------------------------------------------------------------
# API keys
# ------------------------------------------------------------
def test_api_key_extraction():
    assert api_key_from_request(_request()) is None
    assert api_key_from_request(_request(headers={API_KEY_HEADER: "foobar"})) == "foobar"


def test_api_key_validation(monkeypatch):
    monkeypatch.setenv("METABOARD_API_KEY", "test-api-key")
    assert api_key_valid("test-api-key")
    assert not api_key_valid("foobar")
    assert not api_key_valid(None)


def test_api_key_enforced_endpoint(monkeypatch, client, users):
    monkeypatch.setenv("METABOARD_API_KEY", "test-api-key")
    _insert_session(users["rasta"]["id"], datetime(1970, 1, 2))
    Session.create_for_user(users["rasta"]["id"])

    assert client.delete("/api/session/expired").status_code == 403
    assert client.delete("/api/session/expired", headers={API_KEY_HEADER: "foobar"}).status_code == 403

    r = client.delete("/api/session/expired", headers={API_KEY_HEADER: "test-api-key"})
    assert r.status_code == 200, r.text
    assert r.json() == {"deleted": 1}


# ------------------------------------------------------------
# Response formatting
# ------------------------------------------------------------
def test_format_strips_functions():
    assert format_response({"a": 1, "b": lambda: 2}) == {"a": 1}


def test_format_strips_recursively_in_maps():
    assert format_response({"response": {"a": 1, "b": lambda: 2}}) == {"response": {"a": 1}}


def test_format_strips_recursively_in_lists():
    assert format_response([{"a": 1, "b": lambda: 2}]) == [{"a": 1}]


def test_format_strips_combined():
    assert format_response([{"a": [{"b": 1, "c": lambda: 2}]}]) == [{"a": [{"b": 1}]}]


def test_format_handles_delays():
    pending = Delay(lambda: 1)
    done = Delay(lambda: 2)
    done.force()
    assert format_response({"pending": pending, "done": done}) == {"done": 2}
    assert not pending.realized
