from .base import Base
from .card import Card
from .card_favorite import CardFavorite
from .dashboard import Dashboard
from .dashboard_card import DashboardCard
from .database import Database
from .interface import Instance
from .revision import Revision, push_revision, revisions
from .session import Session
from .setting import Setting, defsetting
from .user import User

__all__ = [
    "Base",
    "Card",
    "CardFavorite",
    "Dashboard",
    "DashboardCard",
    "Database",
    "Instance",
    "Revision",
    "Session",
    "Setting",
    "User",
    "defsetting",
    "push_revision",
    "revisions",
]
