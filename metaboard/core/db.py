"""Engine and session management.

One process-wide engine is created lazily from METABOARD_DB_URL. Everything
that touches the database, including deferred fields forced during
hydration, opens a short-lived session with :func:`session_scope`.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from metaboard.core import config

log = logging.getLogger("metaboard.db")

_ENGINE: Optional[Engine] = None
_SESSION_FACTORY: Optional[sessionmaker] = None
_LOCK = threading.Lock()


def _make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # sessions are used from the request threadpool and event workers
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


def configure(url: Optional[str] = None) -> Engine:
    """(Re)bind the module to a database. Used at startup and by tests."""
    global _ENGINE, _SESSION_FACTORY
    url = url or config.db_url()
    with _LOCK:
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = _make_engine(url)
        _SESSION_FACTORY = sessionmaker(bind=_ENGINE, expire_on_commit=False)
    log.info("database configured dialect=%s", _ENGINE.dialect.name)
    return _ENGINE


def get_engine() -> Engine:
    if _ENGINE is None:
        configure()
    return _ENGINE


def create_all() -> None:
    from metaboard.core.models import Base

    Base.metadata.create_all(get_engine())


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    get_engine()
    session = _SESSION_FACTORY()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
