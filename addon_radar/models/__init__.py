"""SQLAlchemy models."""
from addon_radar.models.addon import Addon, Snapshot, Category, ADDON_STATUS_ACTIVE, ADDON_STATUS_INACTIVE
from addon_radar.models.trending import TrendingScore, RankHistory, CATEGORY_HOT, CATEGORY_RISING
from addon_radar.models.system import CollectionRun

__all__ = [
    "Addon",
    "Snapshot",
    "Category",
    "TrendingScore",
    "RankHistory",
    "CollectionRun",
    "ADDON_STATUS_ACTIVE",
    "ADDON_STATUS_INACTIVE",
    "CATEGORY_HOT",
    "CATEGORY_RISING",
]
