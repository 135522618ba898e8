from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, select
from sqlalchemy.orm import Mapped, mapped_column

from metaboard.core import db
from metaboard.core.delay import Delay
from metaboard.core.models.base import Base, utc_now
from metaboard.core.models.dashboard_card import DashboardCard
from metaboard.core.models.interface import PERMS_NONE, Instance, PublicPermsMixin


class Dashboard(PublicPermsMixin, Base):
    __tablename__ = "dashboards"

    hydration_keys = frozenset({"dashboard"})

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(254))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    public_perms: Mapped[int] = mapped_column(Integer, default=PERMS_NONE)
    creator_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    def post_select(self, inst: Instance) -> Instance:
        dashboard_id = self.id
        inst["ordered_cards"] = Delay(lambda: Dashboard.ordered_cards(dashboard_id))
        return inst

    @staticmethod
    def ordered_cards(dashboard_id: int) -> List[Instance]:
        with db.session_scope() as s:
            rows = s.scalars(
                select(DashboardCard)
                .where(DashboardCard.dashboard_id == dashboard_id)
                .order_by(DashboardCard.created_at, DashboardCard.id)
            ).all()
            return [r.to_instance() for r in rows]
