from __future__ import annotations

import os
from typing import Optional


_TRUTHY = ("1", "true", "yes")

DEFAULT_DB_URL = "sqlite:///metaboard.db"
DEFAULT_SESSION_AGE_MINUTES = 20160  # 14 days


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(key)
    if v is None:
        return default
    v = v.strip()
    return v or default


def env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v is None:
        return default
    return v.strip().lower() in _TRUTHY


def env_int(key: str, default: int) -> int:
    try:
        return int((os.getenv(key) or str(default)).strip())
    except (TypeError, ValueError):
        return default


def app_env() -> str:
    return (os.getenv("METABOARD_ENV") or "dev").strip().lower()


def is_test() -> bool:
    return app_env() == "test" or bool(os.getenv("PYTEST_CURRENT_TEST"))


def is_prod() -> bool:
    return app_env() == "prod"


def db_url() -> str:
    return env_str("METABOARD_DB_URL", DEFAULT_DB_URL)


def session_age_minutes() -> int:
    return max(1, env_int("METABOARD_SESSION_AGE_MINUTES", DEFAULT_SESSION_AGE_MINUTES))


def api_key() -> Optional[str]:
    return env_str("METABOARD_API_KEY")
