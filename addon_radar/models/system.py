"""System and run-tracking models."""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, Text, Uuid

from addon_radar.database import Base
from addon_radar.utils import utcnow


class CollectionRun(Base):
    """Track sync cycle runs."""

    __tablename__ = "collection_runs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    collector_name = Column(String(100), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True))
    status = Column(String(20), default="running")  # 'running', 'completed', 'failed'
    records_processed = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
