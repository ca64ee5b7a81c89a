"""Background task scheduler for the sync cycle."""
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from addon_radar.collectors import CurseForgeClient
from addon_radar.config import get_settings
from addon_radar.database import get_session_maker
from addon_radar.pipeline import (
    CalculationResult,
    RetentionSweeper,
    SweepResult,
    SyncResult,
    SyncService,
    TrendingCalculator,
)

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def run_sync_cycle() -> SyncResult:
    """Run one full sync: fetch, write, deactivate, score, sweep.

    A fresh client, and with it a fresh circuit breaker, is built per cycle.
    """
    settings = get_settings()
    async with CurseForgeClient(settings) as client:
        service = SyncService(get_session_maker(), client, settings)
        return await service.run_full_sync()


async def run_trending_calculation() -> CalculationResult:
    """Recalculate trending scores without syncing."""
    async with get_session_maker()() as session:
        return await TrendingCalculator(session).calculate_all()


async def run_retention_sweep() -> SweepResult:
    """Delete expired snapshots and rank history."""
    async with get_session_maker()() as session:
        return await RetentionSweeper(session).sweep()


async def scheduled_sync():
    """Scheduled job: full sync cycle."""
    logger.info("Starting scheduled sync")
    try:
        result = await run_sync_cycle()
    except Exception as e:
        logger.error(f"Scheduled sync crashed: {e}", exc_info=True)
        return
    if not result.success:
        logger.error(f"Scheduled sync failed: {result.message}")


def start_scheduler():
    """Start the background scheduler."""
    settings = get_settings()

    # max_instances=1 keeps this process from overlapping two cycles
    scheduler.add_job(
        scheduled_sync,
        trigger=IntervalTrigger(minutes=settings.sync_interval_minutes),
        id="addon_sync",
        name="Sync Addons And Recalculate Trending",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),  # Run immediately on startup
    )

    scheduler.start()
    logger.info(f"Scheduler started: addon_sync every {settings.sync_interval_minutes} minutes")


def stop_scheduler():
    """Stop the scheduler."""
    scheduler.shutdown()
    logger.info("Scheduler stopped")
