from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint, delete, select
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core import db
from metaboard.core.models.base import Base, utc_now


class CardFavorite(Base):
    __tablename__ = "card_favorites"
    __table_args__ = (UniqueConstraint("card_id", "owner_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), index=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    @classmethod
    def is_favorite(cls, card_id: int, owner_id: int) -> bool:
        with db.session_scope() as s:
            return s.scalars(select(cls.id).where(cls.card_id == card_id, cls.owner_id == owner_id)).first() is not None

    @classmethod
    def add(cls, card_id: int, owner_id: int) -> None:
        if cls.is_favorite(card_id, owner_id):
            return
        with db.session_scope() as s:
            s.add(cls(card_id=card_id, owner_id=owner_id))

    @classmethod
    def remove(cls, card_id: int, owner_id: int) -> None:
        with db.session_scope() as s:
            s.execute(delete(cls).where(cls.card_id == card_id, cls.owner_id == owner_id))
