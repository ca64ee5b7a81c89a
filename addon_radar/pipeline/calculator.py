"""Trending score calculator.

Reads aggregate snapshot statistics for every active addon in bulk, scores
the hot and rising leaderboards, maintains leaderboard entry times and
records rank history.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import and_, case, distinct, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from addon_radar.database import dialect_insert
from addon_radar.errors import ScoringSkippedError
from addon_radar.models import (
    Addon,
    RankHistory,
    Snapshot,
    TrendingScore,
    ADDON_STATUS_ACTIVE,
    CATEGORY_HOT,
    CATEGORY_RISING,
)
from addon_radar.pipeline import scoring
from addon_radar.utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SnapshotStats:
    """Aggregated snapshot figures for one addon."""
    addon_id: int
    download_count: int | None
    thumbs_up_count: int
    download_change_24h: int = 0
    thumbs_change_24h: int = 0
    snapshot_count_24h: int = 0
    download_change_7d: int = 0
    thumbs_change_7d: int = 0
    min_downloads_7d: int = 0
    snapshot_count_7d: int = 0


@dataclass
class _Candidate:
    stats: SnapshotStats
    download_velocity: float
    thumbs_velocity: float
    download_growth_pct: float
    thumbs_growth_pct: float
    size_multiplier: float
    maintenance_multiplier: float
    signal: float = 0.0
    hot_score: float = 0.0
    rising_score: float = 0.0
    first_hot_at: datetime | None = None
    first_rising_at: datetime | None = None


@dataclass
class CalculationResult:
    processed: int = 0
    skipped: int = 0
    hot_count: int = 0
    rising_count: int = 0
    percentile95: float = 0.0
    duration_seconds: float = 0.0
    hot_board: list[int] = field(default_factory=list)
    rising_board: list[int] = field(default_factory=list)


class TrendingCalculator:
    """Compute and store trending scores for all active addons."""

    def __init__(self, session: AsyncSession):
        self.db = session

    async def calculate_all(self, now: datetime | None = None) -> CalculationResult:
        now = now or utcnow()
        start = time.monotonic()
        result = CalculationResult()
        logger.info("Starting trending calculation")

        # Step 1: bulk reads
        all_stats = await self.get_snapshot_stats(now)
        update_counts = await self.get_recent_update_counts(now)
        existing = await self.get_existing_scores()
        logger.info(
            f"Loaded stats for {len(all_stats)} addons, "
            f"{len(update_counts)} update counts, {len(existing)} existing scores"
        )

        # Step 2: 95th percentile of current downloads
        result.percentile95 = scoring.percentile(
            [s.download_count for s in all_stats if s.download_count is not None], 0.95
        )
        logger.info(f"Download p95: {result.percentile95:.0f}")

        # Step 3: per-addon signals
        candidates: list[_Candidate] = []
        for stats in all_stats:
            try:
                candidates.append(
                    self._build_candidate(stats, result.percentile95, update_counts.get(stats.addon_id, 0))
                )
            except (ScoringSkippedError, ArithmeticError, TypeError, ValueError) as e:
                result.skipped += 1
                logger.warning(f"Skipping addon {stats.addon_id} in trending calculation: {e}")

        max_download_velocity = max((c.download_velocity for c in candidates), default=0.0)
        max_thumbs_velocity = max((c.thumbs_velocity for c in candidates), default=0.0)
        for c in candidates:
            c.signal = scoring.calculate_blended_signal(
                scoring.normalize(c.download_velocity, max_download_velocity),
                scoring.normalize(c.thumbs_velocity, max_thumbs_velocity),
                scoring.maintenance_activity(c.maintenance_multiplier),
            )

        # Step 4: hot leaderboard
        for c in candidates:
            if self._hot_eligible(c):
                previous = existing.get(c.stats.addon_id)
                age = self._age_hours(previous.first_hot_at if previous else None, now)
                c.hot_score = scoring.calculate_decayed_score(
                    c.signal, c.size_multiplier, c.maintenance_multiplier, age, scoring.HOT_GRAVITY
                )
        hot_ranked = self._rank(candidates, "hot_score")
        hot_board = {c.stats.addon_id for c in hot_ranked[:scoring.LEADERBOARD_SIZE]}

        # Step 5: rising leaderboard, excluding this cycle's hot board
        for c in candidates:
            if self._rising_eligible(c) and c.stats.addon_id not in hot_board:
                previous = existing.get(c.stats.addon_id)
                age = self._age_hours(previous.first_rising_at if previous else None, now)
                c.rising_score = scoring.calculate_decayed_score(
                    c.signal, c.size_multiplier, c.maintenance_multiplier, age, scoring.RISING_GRAVITY
                )
        rising_ranked = self._rank(candidates, "rising_score")
        rising_board = {c.stats.addon_id for c in rising_ranked[:scoring.LEADERBOARD_SIZE]}

        # Step 6: entry times survive only while on the board
        for c in candidates:
            previous = existing.get(c.stats.addon_id)
            if c.stats.addon_id in hot_board:
                c.first_hot_at = (previous.first_hot_at if previous else None) or now
            if c.stats.addon_id in rising_board:
                c.first_rising_at = (previous.first_rising_at if previous else None) or now

        # Step 7: persist
        await self.upsert_scores(candidates, now)
        await self.reset_inactive_scores()
        await self.record_rank_history(hot_ranked, rising_ranked, now)
        await self.db.commit()

        result.processed = len(candidates)
        result.hot_count = len(hot_ranked)
        result.rising_count = len(rising_ranked)
        result.hot_board = [c.stats.addon_id for c in hot_ranked[:scoring.LEADERBOARD_SIZE]]
        result.rising_board = [c.stats.addon_id for c in rising_ranked[:scoring.LEADERBOARD_SIZE]]
        result.duration_seconds = time.monotonic() - start
        logger.info(
            f"Trending calculation complete: {result.processed} scored, {result.skipped} skipped, "
            f"{result.hot_count} hot, {result.rising_count} rising in {result.duration_seconds:.1f}s"
        )
        return result

    def _build_candidate(self, stats: SnapshotStats, percentile95: float, update_count: int) -> _Candidate:
        if stats.download_count is None or stats.download_count < 0:
            raise ScoringSkippedError(stats.addon_id, f"unusable download count {stats.download_count!r}")

        download_velocity = scoring.select_velocity(
            stats.download_change_24h, stats.download_change_7d, stats.snapshot_count_24h
        )
        thumbs_velocity = scoring.select_velocity(
            stats.thumbs_change_24h, stats.thumbs_change_7d, stats.snapshot_count_24h
        )

        thumbs_base = (stats.thumbs_up_count or 0) - stats.thumbs_change_7d

        return _Candidate(
            stats=stats,
            download_velocity=download_velocity,
            thumbs_velocity=thumbs_velocity,
            download_growth_pct=scoring.growth_pct(stats.download_change_7d, stats.min_downloads_7d),
            thumbs_growth_pct=scoring.growth_pct(stats.thumbs_change_7d, thumbs_base),
            size_multiplier=scoring.calculate_size_multiplier(stats.download_count, percentile95),
            maintenance_multiplier=scoring.calculate_maintenance_multiplier(update_count),
        )

    @staticmethod
    def _hot_eligible(c: _Candidate) -> bool:
        return scoring.is_hot_eligible(c.stats.download_count) and c.download_velocity > 0

    @staticmethod
    def _rising_eligible(c: _Candidate) -> bool:
        return scoring.is_rising_eligible(c.stats.download_count) and c.download_velocity > 0

    @staticmethod
    def _age_hours(first_at: datetime | None, now: datetime) -> float:
        if first_at is None:
            return 0.0
        return max((now - ensure_utc(first_at)).total_seconds() / 3600, 0.0)

    @staticmethod
    def _rank(candidates: list[_Candidate], attr: str) -> list[_Candidate]:
        """Scored candidates, best first; ties broken by addon id."""
        scored = [c for c in candidates if getattr(c, attr) > 0]
        return sorted(scored, key=lambda c: (-getattr(c, attr), c.stats.addon_id))

    async def get_snapshot_stats(self, now: datetime) -> list[SnapshotStats]:
        """Aggregate 24h and 7d snapshot windows for every active addon in one query."""
        cutoff_24h = now - timedelta(hours=24)
        cutoff_7d = now - timedelta(days=7)
        in_24h = Snapshot.recorded_at >= cutoff_24h

        stmt = (
            select(
                Addon.id,
                Addon.download_count,
                Addon.thumbs_up_count,
                func.max(case((in_24h, Snapshot.download_count))).label("max_dl_24h"),
                func.min(case((in_24h, Snapshot.download_count))).label("min_dl_24h"),
                func.max(case((in_24h, Snapshot.thumbs_up_count))).label("max_th_24h"),
                func.min(case((in_24h, Snapshot.thumbs_up_count))).label("min_th_24h"),
                func.count(case((in_24h, Snapshot.id))).label("count_24h"),
                func.max(Snapshot.download_count).label("max_dl_7d"),
                func.min(Snapshot.download_count).label("min_dl_7d"),
                func.max(Snapshot.thumbs_up_count).label("max_th_7d"),
                func.min(Snapshot.thumbs_up_count).label("min_th_7d"),
                func.count(Snapshot.id).label("count_7d"),
            )
            .select_from(Addon)
            .outerjoin(
                Snapshot,
                and_(
                    Snapshot.addon_id == Addon.id,
                    Snapshot.recorded_at >= cutoff_7d,
                    Snapshot.recorded_at <= now,
                ),
            )
            .where(Addon.status == ADDON_STATUS_ACTIVE)
            .group_by(Addon.id, Addon.download_count, Addon.thumbs_up_count)
            .order_by(Addon.id)
        )
        rows = (await self.db.execute(stmt)).all()

        def spread(high, low) -> int:
            if high is None or low is None:
                return 0
            return int(high) - int(low)

        return [
            SnapshotStats(
                addon_id=row.id,
                download_count=row.download_count,
                thumbs_up_count=row.thumbs_up_count or 0,
                download_change_24h=spread(row.max_dl_24h, row.min_dl_24h),
                thumbs_change_24h=spread(row.max_th_24h, row.min_th_24h),
                snapshot_count_24h=row.count_24h or 0,
                download_change_7d=spread(row.max_dl_7d, row.min_dl_7d),
                thumbs_change_7d=spread(row.max_th_7d, row.min_th_7d),
                min_downloads_7d=int(row.min_dl_7d or 0),
                snapshot_count_7d=row.count_7d or 0,
            )
            for row in rows
        ]

    async def get_recent_update_counts(self, now: datetime) -> dict[int, int]:
        """Distinct file release dates per addon over the maintenance window."""
        cutoff = now - timedelta(days=scoring.MAINTENANCE_WINDOW_DAYS)
        stmt = (
            select(Snapshot.addon_id, func.count(distinct(Snapshot.latest_file_date)))
            .where(Snapshot.latest_file_date >= cutoff)
            .group_by(Snapshot.addon_id)
        )
        rows = (await self.db.execute(stmt)).all()
        return {addon_id: count for addon_id, count in rows}

    async def get_existing_scores(self) -> dict[int, TrendingScore]:
        rows = (await self.db.execute(select(TrendingScore))).scalars().all()
        return {row.addon_id: row for row in rows}

    async def upsert_scores(self, candidates: list[_Candidate], now: datetime):
        if not candidates:
            return

        rows = [
            {
                "addon_id": c.stats.addon_id,
                "hot_score": c.hot_score,
                "rising_score": c.rising_score,
                "download_velocity": c.download_velocity,
                "thumbs_velocity": c.thumbs_velocity,
                "download_growth_pct": c.download_growth_pct,
                "thumbs_growth_pct": c.thumbs_growth_pct,
                "size_multiplier": c.size_multiplier,
                "maintenance_multiplier": c.maintenance_multiplier,
                "first_hot_at": c.first_hot_at,
                "first_rising_at": c.first_rising_at,
                "calculated_at": now,
            }
            for c in candidates
        ]

        stmt = dialect_insert(self.db, TrendingScore.__table__)
        stmt = stmt.on_conflict_do_update(
            index_elements=["addon_id"],
            set_={k: stmt.excluded[k] for k in rows[0] if k != "addon_id"},
        )
        await self.db.execute(stmt, rows)
        # Rows loaded in step 1 are stale now
        self.db.expire_all()

    async def reset_inactive_scores(self):
        """Zero scores and entry times for addons that are no longer active."""
        inactive_ids = select(Addon.id).where(Addon.status != ADDON_STATUS_ACTIVE)
        await self.db.execute(
            update(TrendingScore)
            .where(TrendingScore.addon_id.in_(inactive_ids))
            .values(hot_score=0.0, rising_score=0.0, first_hot_at=None, first_rising_at=None)
            .execution_options(synchronize_session=False)
        )

    async def record_rank_history(self, hot_ranked: list[_Candidate], rising_ranked: list[_Candidate], now: datetime):
        rows = [
            {"addon_id": c.stats.addon_id, "category": CATEGORY_HOT, "rank": i, "score": c.hot_score, "recorded_at": now}
            for i, c in enumerate(hot_ranked, start=1)
        ]
        rows += [
            {"addon_id": c.stats.addon_id, "category": CATEGORY_RISING, "rank": i, "score": c.rising_score, "recorded_at": now}
            for i, c in enumerate(rising_ranked, start=1)
        ]
        if rows:
            await self.db.execute(insert(RankHistory), rows)
