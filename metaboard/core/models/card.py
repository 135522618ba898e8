from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func, select
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core import db
from metaboard.core.delay import Delay
from metaboard.core.models.base import Base, utc_now
from metaboard.core.models.interface import PERMS_NONE, Instance, PublicPermsMixin


def query_metadata(dataset_query: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """database_id, table_id and query_type implied by a dataset_query."""
    q = dataset_query or {}
    inner = q.get("query") if isinstance(q.get("query"), Mapping) else {}
    return {
        "database_id": q.get("database"),
        "table_id": inner.get("source_table"),
        "query_type": q.get("type"),
    }


class Card(PublicPermsMixin, Base):
    __tablename__ = "cards"

    hydration_keys = frozenset({"card"})

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(254))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display: Mapped[str] = mapped_column(String(254))
    dataset_query: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    visualization_settings: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    public_perms: Mapped[int] = mapped_column(Integer, default=PERMS_NONE)
    creator_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    database_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("databases.id"), nullable=True)
    table_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    query_type: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    def post_select(self, inst: Instance) -> Instance:
        card_id = self.id
        inst["dashboard_count"] = Delay(lambda: Card.dashboard_count(card_id))
        return inst

    @staticmethod
    def dashboard_count(card_id: int) -> int:
        from metaboard.core.models.dashboard_card import DashboardCard

        with db.session_scope() as s:
            return s.scalar(select(func.count()).select_from(DashboardCard).where(DashboardCard.card_id == card_id)) or 0
