from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, func, select
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core import db
from metaboard.core.auth.passwords import hash_password, verify_password
from metaboard.core.models.base import Base, utc_now
from metaboard.core.models.interface import Instance


class User(Base):
    __tablename__ = "users"

    hydration_keys = frozenset({"user", "creator"})
    hidden_fields = ("password",)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(254), unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(254))
    last_name: Mapped[str] = mapped_column(String(254))
    password: Mapped[str] = mapped_column(String(512))
    is_superuser: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    date_joined: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def post_select(self, inst: Instance) -> Instance:
        inst["common_name"] = f"{self.first_name} {self.last_name}"
        return inst

    @classmethod
    def create(
        cls,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        is_superuser: bool = False,
        is_active: bool = True,
    ) -> Instance:
        hashed = hash_password(password)
        with db.session_scope() as s:
            u = cls(
                email=email.strip().lower(),
                first_name=first_name,
                last_name=last_name,
                password=hashed,
                is_superuser=is_superuser,
                is_active=is_active,
            )
            s.add(u)
            s.flush()
            return u.to_instance()

    @classmethod
    def authenticate(cls, email: str, password: str) -> Optional[Instance]:
        """Return the active user with these credentials, recording the login."""
        with db.session_scope() as s:
            u = s.scalars(select(cls).where(func.lower(cls.email) == (email or "").strip().lower())).first()
            if u is None or not u.is_active:
                return None
            if not verify_password(password or "", u.password):
                return None
            u.last_login = utc_now()
            s.flush()
            return u.to_instance()
