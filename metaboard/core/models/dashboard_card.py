from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core.models.base import Base, utc_now


class DashboardCard(Base):
    """Placement of a card on a dashboard."""

    __tablename__ = "dashboard_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    dashboard_id: Mapped[int] = mapped_column(Integer, ForeignKey("dashboards.id", ondelete="CASCADE"), index=True)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), index=True)
    sizeX: Mapped[int] = mapped_column(Integer, default=2)
    sizeY: Mapped[int] = mapped_column(Integer, default=2)
    row: Mapped[int] = mapped_column(Integer, default=0)
    col: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)
