from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, delete, select
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core import config, db
from metaboard.core.models.base import Base, utc_now


class Session(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(254), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    @classmethod
    def create_for_user(cls, user_id: int) -> str:
        sid = str(uuid.uuid4())
        with db.session_scope() as s:
            s.add(cls(id=sid, user_id=user_id, created_at=utc_now()))
        return sid

    @classmethod
    def delete_session(cls, session_id: str) -> bool:
        with db.session_scope() as s:
            res = s.execute(delete(cls).where(cls.id == session_id))
            return (res.rowcount or 0) > 0

    @staticmethod
    def oldest_valid_created_at() -> datetime:
        return utc_now() - timedelta(minutes=config.session_age_minutes())

    @classmethod
    def user_id_for_session(cls, session_id: Optional[str]) -> Optional[int]:
        """
        User id of a live session: it exists, is not expired, and belongs to
        an active user. None otherwise.
        """
        if not session_id:
            return None
        from metaboard.core.models.user import User

        with db.session_scope() as s:
            row = s.execute(
                select(cls.user_id)
                .join(User, User.id == cls.user_id)
                .where(
                    cls.id == session_id,
                    cls.created_at > cls.oldest_valid_created_at(),
                    User.is_active.is_(True),
                )
            ).first()
            return row[0] if row else None

    @classmethod
    def purge_expired(cls) -> int:
        with db.session_scope() as s:
            res = s.execute(delete(cls).where(cls.created_at <= cls.oldest_valid_created_at()))
            return res.rowcount or 0
