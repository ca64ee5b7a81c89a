"""Trending score and rank history models."""
from sqlalchemy import BigInteger, Column, DateTime, Float, ForeignKey, Index, Integer, SmallInteger, String

from addon_radar.database import Base

CATEGORY_HOT = "hot"
CATEGORY_RISING = "rising"


class TrendingScore(Base):
    """Latest computed trending state for an addon."""

    __tablename__ = "trending_scores"

    addon_id = Column(Integer, ForeignKey("addons.id", ondelete="CASCADE"), primary_key=True, autoincrement=False)

    # Final scores (0 = not eligible)
    hot_score = Column(Float, nullable=False, default=0.0, index=True)
    rising_score = Column(Float, nullable=False, default=0.0, index=True)

    # Signals
    download_velocity = Column(Float, default=0.0)  # downloads/hour
    thumbs_velocity = Column(Float, default=0.0)
    download_growth_pct = Column(Float, default=0.0)
    thumbs_growth_pct = Column(Float, default=0.0)

    # Multipliers
    size_multiplier = Column(Float, default=1.0)  # 0.1 - 1.0
    maintenance_multiplier = Column(Float, default=1.0)  # 0.95 - 1.15

    # Leaderboard entry times, cleared when dropping out of the top 20
    first_hot_at = Column(DateTime(timezone=True))
    first_rising_at = Column(DateTime(timezone=True))

    calculated_at = Column(DateTime(timezone=True))


class RankHistory(Base):
    """Leaderboard position of an addon at one calculation cycle."""

    __tablename__ = "rank_history"
    __table_args__ = (
        Index("idx_rank_history_addon_category_time", "addon_id", "category", "recorded_at"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    addon_id = Column(Integer, ForeignKey("addons.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(10), nullable=False)  # 'hot', 'rising'
    rank = Column(SmallInteger, nullable=False)
    score = Column(Float, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, index=True)
