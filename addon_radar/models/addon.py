"""Addon, snapshot and category models."""
from sqlalchemy import (
    ARRAY,
    JSON,
    BigInteger,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from addon_radar.database import Base

# Postgres arrays, JSON lists on SQLite
IntegerList = ARRAY(Integer).with_variant(JSON(), "sqlite")
StringList = ARRAY(String).with_variant(JSON(), "sqlite")

ADDON_STATUS_ACTIVE = "active"
ADDON_STATUS_INACTIVE = "inactive"


class Addon(Base):
    """An addon being tracked, holding its current metrics."""

    __tablename__ = "addons"

    id = Column(Integer, primary_key=True, autoincrement=False)  # CurseForge mod ID
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, index=True)
    summary = Column(Text)
    author_name = Column(Text)
    author_id = Column(Integer)
    logo_url = Column(Text)
    primary_category_id = Column(Integer)
    categories = Column(IntegerList, default=list)
    game_versions = Column(StringList, default=list)
    created_at = Column(DateTime(timezone=True))
    last_updated_at = Column(DateTime(timezone=True))
    last_synced_at = Column(DateTime(timezone=True))
    status = Column(String(20), nullable=False, default=ADDON_STATUS_ACTIVE, index=True)

    # Current metrics (updated each sync)
    download_count = Column(BigInteger, default=0)
    thumbs_up_count = Column(Integer, default=0)
    popularity_rank = Column(Integer)
    rating = Column(Float)
    latest_file_date = Column(DateTime(timezone=True))

    # Relationships
    snapshots = relationship("Snapshot", back_populates="addon", cascade="all, delete-orphan", passive_deletes=True)


class Snapshot(Base):
    """Point-in-time metrics for an addon. Never updated once written."""

    __tablename__ = "snapshots"
    __table_args__ = (
        Index("idx_snapshots_addon_time", "addon_id", "recorded_at"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    addon_id = Column(Integer, ForeignKey("addons.id", ondelete="CASCADE"), nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, index=True)
    download_count = Column(BigInteger, nullable=False)
    thumbs_up_count = Column(Integer)
    popularity_rank = Column(Integer)
    rating = Column(Float)
    latest_file_date = Column(DateTime(timezone=True))

    # Relationships
    addon = relationship("Addon", back_populates="snapshots")


class Category(Base):
    """Addon category reference data."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"))
    icon_url = Column(Text)
