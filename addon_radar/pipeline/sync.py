"""Sync orchestrator: one full ingestion and scoring cycle."""
import logging
import time
from dataclasses import dataclass, field

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from addon_radar.collectors.curseforge import CurseForgeClient, DEFAULT_SORT_STRATEGIES, SortStrategy
from addon_radar.collectors.schemas import Mod
from addon_radar.config import Settings, get_settings
from addon_radar.database import dialect_insert
from addon_radar.errors import UpstreamError, WriteConsistencyError
from addon_radar.models import Addon, Category, CollectionRun, ADDON_STATUS_ACTIVE, ADDON_STATUS_INACTIVE
from addon_radar.pipeline.calculator import CalculationResult, TrendingCalculator
from addon_radar.pipeline.retention import RetentionSweeper, SweepResult
from addon_radar.pipeline.writer import SnapshotWriter
from addon_radar.utils import utcnow

logger = logging.getLogger(__name__)

INACTIVE_UPDATE_CHUNK = 1000


@dataclass
class SyncResult:
    """Outcome of one cycle."""
    success: bool = True
    fetched: int = 0
    success_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    inactive_marked: int = 0
    duration_seconds: float = 0.0
    failed_strategies: list[str] = field(default_factory=list)
    synced_ids: set[int] = field(default_factory=set)
    calculation: CalculationResult | None = None
    sweep: SweepResult | None = None
    message: str | None = None


class SyncService:
    """Drive fetch, write, deactivate, score and sweep for one cycle.

    Per-addon write failures are counted but never abort the cycle. The cycle
    is reported failed when a sort strategy could not be fetched or when the
    write error rate exceeds max_error_rate.
    """

    name = "addon_sync"

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        client: CurseForgeClient,
        settings: Settings | None = None,
        strategies: tuple[SortStrategy, ...] = DEFAULT_SORT_STRATEGIES,
        clock=utcnow,
    ):
        self.settings = settings or get_settings()
        self.session_maker = session_maker
        self.client = client
        self.strategies = strategies
        self.writer = SnapshotWriter(session_maker)
        self.clock = clock
        self.run_id = None

    async def run_full_sync(self) -> SyncResult:
        start = time.monotonic()
        result = SyncResult()
        logger.info("Starting full sync")
        await self.start_run()

        try:
            await self.sync_categories()

            # Fetch and merge, first sort order wins
            mods = await self.fetch_all(result)
            result.fetched = len(mods)
            result.synced_ids = {mod.id for mod in mods}
            logger.info(f"Fetched {len(mods)} unique addons")

            # Atomic addon + snapshot writes
            for mod in mods:
                try:
                    await self.writer.write(mod, self.clock())
                    result.success_count += 1
                except WriteConsistencyError as e:
                    result.error_count += 1
                    logger.error(f"Failed to sync addon {mod.id} ({mod.name}): {e}")

            result.inactive_marked = await self.mark_missing_inactive(result)
            result.calculation = await self.run_calculation()
            result.sweep = await self.run_sweep()

            attempted = result.success_count + result.error_count
            result.error_rate = result.error_count / attempted if attempted else 0.0

            failures = []
            if result.failed_strategies:
                failures.append(f"upstream fetch failed for: {', '.join(result.failed_strategies)}")
            if result.error_rate > self.settings.max_error_rate:
                failures.append(
                    f"too many errors: {result.error_count}/{attempted} ({result.error_rate:.1%})"
                )
            # Scoring and cleanup failures are reported but do not fail the cycle
            warnings = []
            if result.calculation is None:
                warnings.append("trending calculation failed")
            if result.sweep is None:
                warnings.append("retention sweep failed")

            if failures:
                result.success = False
            if failures or warnings:
                result.message = "; ".join(failures + warnings)

        except Exception as e:
            result.success = False
            result.message = str(e)
            logger.error(f"Sync failed: {e}", exc_info=True)
            raise
        finally:
            result.duration_seconds = time.monotonic() - start
            await self.complete_run(result)

        warn_after = self.settings.duration_warning_minutes * 60
        if result.duration_seconds > warn_after:
            logger.warning(
                f"Sync took {result.duration_seconds / 60:.1f} minutes, approaching the hourly "
                f"schedule (warning at {self.settings.duration_warning_minutes}m)"
            )

        logger.info(
            f"Full sync {'complete' if result.success else 'FAILED'}: {result.fetched} fetched, "
            f"{result.success_count} written, {result.error_count} errors "
            f"({result.error_rate:.2%}), {result.inactive_marked} marked inactive "
            f"in {result.duration_seconds:.1f}s"
        )
        return result

    async def fetch_all(self, result: SyncResult) -> list[Mod]:
        """Fetch every sort strategy, keeping the first record seen per addon."""
        seen: set[int] = set()
        merged: list[Mod] = []

        for sort in self.strategies:
            logger.info(f"Fetching addons sorted by {sort.name}")
            fetched = 0
            new = 0
            try:
                async for page in self.client.iter_pages(sort, self.settings.game_version_type_id):
                    fetched += len(page)
                    for mod in page:
                        if mod.id in seen:
                            continue
                        seen.add(mod.id)
                        merged.append(mod)
                        new += 1
            except UpstreamError as e:
                result.failed_strategies.append(sort.name)
                logger.error(f"Fetching by {sort.name} aborted after {fetched} addons: {e}")

            logger.info(f"Sorted by {sort.name}: fetched {fetched}, new {new}, total unique {len(merged)}")

        return merged

    async def sync_categories(self) -> int:
        """Refresh category reference data. Failures are logged, never fatal."""
        try:
            categories = await self.client.get_categories()
        except UpstreamError as e:
            logger.warning(f"Failed to fetch categories: {e}")
            return 0

        async with self.session_maker() as session:
            try:
                # Parents may arrive after children: insert without links first
                for linked in (False, True):
                    for cat in categories:
                        if linked and not cat.parent_id:
                            continue
                        values = {
                            "id": cat.id,
                            "name": cat.name,
                            "slug": cat.slug,
                            "parent_id": cat.parent_id if linked else None,
                            "icon_url": cat.icon_url or None,
                        }
                        stmt = dialect_insert(session, Category.__table__).values(**values)
                        stmt = stmt.on_conflict_do_update(
                            index_elements=["id"],
                            set_={k: stmt.excluded[k] for k in values if k != "id"},
                        )
                        await session.execute(stmt)
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.warning(f"Failed to store categories: {e}")
                return 0

        logger.info(f"Synced {len(categories)} categories")
        return len(categories)

    async def mark_missing_inactive(self, result: SyncResult) -> int:
        """Soft-remove active addons that no sort order returned this cycle."""
        if result.failed_strategies:
            logger.warning("Skipping inactive marking: not every sort order was fetched")
            return 0
        if len(result.synced_ids) < self.settings.min_synced_addons:
            logger.warning(
                f"Skipping inactive marking: synced {len(result.synced_ids)} addons, "
                f"below threshold of {self.settings.min_synced_addons}"
            )
            return 0

        async with self.session_maker() as session:
            active_ids = (
                await session.execute(select(Addon.id).where(Addon.status == ADDON_STATUS_ACTIVE))
            ).scalars().all()
            missing = sorted(set(active_ids) - result.synced_ids)

            for i in range(0, len(missing), INACTIVE_UPDATE_CHUNK):
                chunk = missing[i:i + INACTIVE_UPDATE_CHUNK]
                await session.execute(
                    update(Addon)
                    .where(Addon.id.in_(chunk), Addon.status == ADDON_STATUS_ACTIVE)
                    .values(status=ADDON_STATUS_INACTIVE)
                    .execution_options(synchronize_session=False)
                )
            await session.commit()

        if missing:
            logger.info(f"Marked {len(missing)} addons inactive")
        return len(missing)

    async def run_calculation(self) -> CalculationResult | None:
        """Score leaderboards; a failure here leaves the synced data in place."""
        async with self.session_maker() as session:
            try:
                return await TrendingCalculator(session).calculate_all(self.clock())
            except Exception as e:
                await session.rollback()
                logger.error(f"Trending calculation failed: {e}", exc_info=True)
                return None

    async def run_sweep(self) -> SweepResult | None:
        async with self.session_maker() as session:
            try:
                return await RetentionSweeper(session, self.settings).sweep(self.clock())
            except Exception as e:
                await session.rollback()
                logger.warning(f"Retention sweep failed: {e}")
                return None

    async def start_run(self) -> CollectionRun:
        """Record the start of a sync run."""
        async with self.session_maker() as session:
            run = CollectionRun(
                collector_name=self.name,
                started_at=utcnow(),
                status="running",
            )
            session.add(run)
            await session.commit()
            self.run_id = run.id
        logger.info(f"Started sync run {self.run_id}")
        return run

    async def complete_run(self, result: SyncResult):
        """Record the completion of a sync run."""
        status = "completed" if result.success else "failed"
        async with self.session_maker() as session:
            await session.execute(
                update(CollectionRun)
                .where(CollectionRun.id == self.run_id)
                .values(
                    completed_at=utcnow(),
                    status=status,
                    records_processed=result.success_count,
                    error_count=result.error_count,
                    error_message=result.message,
                )
            )
            await session.commit()
        logger.info(f"Completed sync run {self.run_id} - {status} ({result.success_count} records)")
