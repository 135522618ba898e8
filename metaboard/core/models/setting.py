"""
Admin-editable settings.

A setting is declared once with :func:`defsetting`. Its value resolves in
order: the value stored in the database, then the environment variable
``METABOARD_<KEY>`` (dashes become underscores), then the declared default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core import db
from metaboard.core.models.base import Base


class Setting(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(254), primary_key=True)
    value: Mapped[str] = mapped_column(Text)


@dataclass(frozen=True)
class SettingDef:
    key: str
    description: str
    default: Optional[str] = None

    @property
    def env_var(self) -> str:
        return "METABOARD_" + self.key.upper().replace("-", "_")

    def get(self) -> Optional[str]:
        stored = get_stored(self.key)
        if stored is not None:
            return stored
        env = os.getenv(self.env_var)
        if env is not None:
            return env
        return self.default

    def set(self, value: Optional[str]) -> None:
        set_setting(self.key, value)

    def delete(self) -> None:
        delete_setting(self.key)

    def describe(self) -> Dict[str, Any]:
        default = f"Using ${self.env_var}" if os.getenv(self.env_var) is not None else self.default
        return {
            "key": self.key,
            "value": get_stored(self.key),
            "description": self.description,
            "default": default,
        }


_REGISTRY: Dict[str, SettingDef] = {}


def defsetting(key: str, description: str, default: Optional[str] = None) -> SettingDef:
    s = SettingDef(key=key, description=description, default=default)
    _REGISTRY[key] = s
    return s


def registered(key: str) -> Optional[SettingDef]:
    return _REGISTRY.get(key)


def get_stored(key: str) -> Optional[str]:
    with db.session_scope() as s:
        row = s.get(Setting, key)
        return row.value if row is not None else None


def setting_exists(key: str) -> bool:
    return get_stored(key) is not None


def set_setting(key: str, value: Optional[str]) -> None:
    """Store value for key; None deletes the stored value."""
    if key not in _REGISTRY:
        raise KeyError(key)
    if value is None:
        delete_setting(key)
        return
    with db.session_scope() as s:
        row = s.get(Setting, key)
        if row is None:
            s.add(Setting(key=key, value=str(value)))
        else:
            row.value = str(value)


def delete_setting(key: str) -> None:
    if key not in _REGISTRY:
        raise KeyError(key)
    with db.session_scope() as s:
        row = s.get(Setting, key)
        if row is not None:
            s.delete(row)


def all_settings() -> List[Dict[str, Any]]:
    return [_REGISTRY[k].describe() for k in sorted(_REGISTRY)]


site_name = defsetting("site-name", "The name used for this instance of Metaboard.", "Metaboard")
admin_email = defsetting("admin-email", "The email address users should be referred to if they encounter a problem.")
