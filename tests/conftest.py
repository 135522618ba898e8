import os
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from metaboard.api.main import app
from metaboard.api.middleware.auth import SESSION_HEADER
from metaboard.core import db
from metaboard.core.models import Card, Dashboard, DashboardCard, Database, Session, User


TEST_USERS: Dict[str, Dict[str, Any]] = {
    "rasta": {
        "email": "rasta@metaboard.test",
        "first_name": "Rasta",
        "last_name": "Toucan",
        "password": "blueberries",
    },
    "crowberto": {
        "email": "crowberto@metaboard.test",
        "first_name": "Crowberto",
        "last_name": "Corv",
        "password": "blackjet",
        "is_superuser": True,
    },
    "trashbird": {
        "email": "trashbird@metaboard.test",
        "first_name": "Trash",
        "last_name": "Bird",
        "password": "birdseed",
        "is_active": False,
    },
}


@pytest.fixture(scope="session", autouse=True)
def _force_test_env():
    # Make runtime behave deterministically in tests
    os.environ.setdefault("METABOARD_ENV", "test")
    os.environ.setdefault("METABOARD_API_KEY", "test-api-key")


@pytest.fixture(autouse=True)
def _db(tmp_path):
    """Fresh SQLite database per test."""
    db.configure(f"sqlite:///{tmp_path / 'metaboard.db'}")
    db.create_all()
    yield
    db.get_engine().dispose()


@pytest.fixture()
def users(_db) -> Dict[str, Dict[str, Any]]:
    return {name: User.create(**attrs) for name, attrs in TEST_USERS.items()}


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def user_client(users):
    """user_client("rasta") -> TestClient authenticated as rasta."""

    def _client(name: str) -> TestClient:
        sid = Session.create_for_user(users[name]["id"])
        return TestClient(app, headers={SESSION_HEADER: sid})

    return _client


@pytest.fixture()
def make_database():
    def _make(name: str = "sample", engine: str = "h2") -> int:
        with db.session_scope() as s:
            d = Database(name=name, engine=engine, details={})
            s.add(d)
            s.flush()
            return d.id

    return _make


@pytest.fixture()
def make_card():
    def _make(creator_id: int, name: str = "card", public_perms: int = 0, **kw) -> int:
        with db.session_scope() as s:
            c = Card(
                name=name,
                display=kw.pop("display", "table"),
                dataset_query=kw.pop("dataset_query", {}),
                visualization_settings=kw.pop("visualization_settings", {}),
                public_perms=public_perms,
                creator_id=creator_id,
                **kw,
            )
            s.add(c)
            s.flush()
            return c.id

    return _make


@pytest.fixture()
def make_dashboard():
    def _make(creator_id: int, name: str = "dash", public_perms: int = 0, card_ids=()) -> int:
        with db.session_scope() as s:
            d = Dashboard(name=name, public_perms=public_perms, creator_id=creator_id)
            s.add(d)
            s.flush()
            for cid in card_ids:
                s.add(DashboardCard(dashboard_id=d.id, card_id=cid))
            return d.id

    return _make
