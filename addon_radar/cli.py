"""Command line entry point for one-shot pipeline jobs.

Usage:
    python -m addon_radar.cli sync
    python -m addon_radar.cli calculate
    python -m addon_radar.cli sweep
    python -m addon_radar.cli init-db

Intended for external schedulers (cron, Cloud Run jobs) that own the cadence.
"""
import argparse
import asyncio
import logging
import sys

from addon_radar.config import get_settings
from addon_radar.database import dispose_engine, init_db
from addon_radar.scheduler import run_retention_sweep, run_sync_cycle, run_trending_calculation

logger = logging.getLogger("addon_radar.cli")


async def _sync() -> int:
    result = await run_sync_cycle()
    if not result.success:
        logger.error(f"Sync failed: {result.message}")
        return 1
    return 0


async def _calculate() -> int:
    result = await run_trending_calculation()
    logger.info(f"Calculated {result.processed} scores ({result.hot_count} hot, {result.rising_count} rising)")
    return 0


async def _sweep() -> int:
    result = await run_retention_sweep()
    logger.info(
        f"Swept {result.snapshots_deleted} snapshots, {result.rank_history_deleted} rank history rows"
    )
    return 0


async def _init_db() -> int:
    await init_db()
    logger.info("Database tables created")
    return 0


COMMANDS = {
    "sync": _sync,
    "calculate": _calculate,
    "sweep": _sweep,
    "init-db": _init_db,
}


async def _run(command: str) -> int:
    try:
        return await COMMANDS[command]()
    finally:
        await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="addon-radar", description="Addon Radar pipeline jobs")
    parser.add_argument("command", choices=sorted(COMMANDS), help="job to run once")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.command == "sync" and not settings.curseforge_api_key:
        logger.error("CURSEFORGE_API_KEY is required for sync")
        return 1

    try:
        return asyncio.run(_run(args.command))
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
