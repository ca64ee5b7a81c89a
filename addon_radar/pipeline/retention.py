"""Retention sweeper for snapshots and rank history."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from addon_radar.config import Settings, get_settings
from addon_radar.models import RankHistory, Snapshot
from addon_radar.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    snapshots_deleted: int = 0
    rank_history_deleted: int = 0
    batches: int = 0
    complete: bool = True  # False when the batch cap left rows for the next cycle


class RetentionSweeper:
    """Delete rows past their retention horizon in bounded batches.

    Batches are picked by primary key order, which follows insertion order,
    so each delete stays cheap. Each table gets at most max_batches batches
    per sweep; rows left over are picked up by the next cycle.
    """

    pause_between_batches: float = 0.1

    def __init__(self, session: AsyncSession, settings: Settings | None = None, sleep=asyncio.sleep):
        settings = settings or get_settings()
        self.db = session
        self.snapshot_retention = timedelta(days=settings.snapshot_retention_days)
        self.rank_history_retention = timedelta(days=settings.rank_history_retention_days)
        self.batch_size = settings.retention_batch_size
        self.max_batches = settings.retention_max_batches
        self._sleep = sleep

    async def delete_batch(self, model, cutoff: datetime) -> int:
        """Delete up to batch_size rows of `model` recorded before cutoff."""
        ids = (
            select(model.id)
            .where(model.recorded_at < cutoff)
            .order_by(model.id)
            .limit(self.batch_size)
            .scalar_subquery()
        )
        result = await self.db.execute(
            delete(model).where(model.id.in_(ids)).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def _sweep_table(self, model, cutoff: datetime, result: SweepResult) -> int:
        total = 0
        for _ in range(self.max_batches):
            deleted = await self.delete_batch(model, cutoff)
            result.batches += 1
            total += deleted
            if deleted < self.batch_size:
                return total
            # More to do, yield briefly to reduce contention
            await self._sleep(self.pause_between_batches)

        result.complete = False
        logger.info(f"Retention batch cap reached on {model.__tablename__}; remaining rows deferred")
        return total

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or utcnow()
        result = SweepResult()

        result.snapshots_deleted = await self._sweep_table(Snapshot, now - self.snapshot_retention, result)
        result.rank_history_deleted = await self._sweep_table(
            RankHistory, now - self.rank_history_retention, result
        )

        if result.snapshots_deleted or result.rank_history_deleted:
            logger.info(
                f"Retention sweep deleted {result.snapshots_deleted} snapshots and "
                f"{result.rank_history_deleted} rank history rows in {result.batches} batches"
            )
        return result
