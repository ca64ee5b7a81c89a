"""Leaderboard rank movement over 24h and 7d, read from rank history."""
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from addon_radar.models import RankHistory
from addon_radar.utils import utcnow


@dataclass
class RankChange:
    addon_id: int
    category: str
    current_rank: int
    rank_24h_ago: int | None = None
    rank_7d_ago: int | None = None

    @property
    def change_24h(self) -> int | None:
        """Positions gained since 24h ago (negative = dropped); None if not ranked then."""
        if self.rank_24h_ago is None:
            return None
        return self.rank_24h_ago - self.current_rank

    @property
    def change_7d(self) -> int | None:
        if self.rank_7d_ago is None:
            return None
        return self.rank_7d_ago - self.current_rank


def format_rank_change(change: int | None) -> str:
    """Render a rank delta as 'new', '=', '+3' or '-2'."""
    if change is None:
        return "new"
    if change == 0:
        return "="
    return f"{change:+d}"


async def _ranks_at_or_before(
    session: AsyncSession, category: str, addon_ids: list[int], cutoff: datetime
) -> dict[int, int]:
    """Most recent rank per addon recorded at or before the cutoff."""
    latest = (
        select(RankHistory.addon_id, func.max(RankHistory.recorded_at).label("recorded_at"))
        .where(
            RankHistory.category == category,
            RankHistory.addon_id.in_(addon_ids),
            RankHistory.recorded_at <= cutoff,
        )
        .group_by(RankHistory.addon_id)
        .subquery()
    )
    stmt = select(RankHistory.addon_id, RankHistory.rank).join(
        latest,
        (RankHistory.addon_id == latest.c.addon_id) & (RankHistory.recorded_at == latest.c.recorded_at),
    ).where(RankHistory.category == category)
    rows = (await session.execute(stmt)).all()
    return {addon_id: rank for addon_id, rank in rows}


async def get_rank_changes(
    session: AsyncSession, category: str, now: datetime | None = None
) -> dict[int, RankChange]:
    """Rank changes for every addon on the most recently recorded leaderboard."""
    now = now or utcnow()

    latest_at = (
        await session.execute(
            select(func.max(RankHistory.recorded_at)).where(
                RankHistory.category == category,
                RankHistory.recorded_at <= now,
            )
        )
    ).scalar_one_or_none()
    if latest_at is None:
        return {}

    current = (
        await session.execute(
            select(RankHistory.addon_id, RankHistory.rank).where(
                RankHistory.category == category,
                RankHistory.recorded_at == latest_at,
            )
        )
    ).all()
    if not current:
        return {}

    addon_ids = [addon_id for addon_id, _ in current]
    ranks_24h = await _ranks_at_or_before(session, category, addon_ids, now - timedelta(hours=24))
    ranks_7d = await _ranks_at_or_before(session, category, addon_ids, now - timedelta(days=7))

    return {
        addon_id: RankChange(
            addon_id=addon_id,
            category=category,
            current_rank=rank,
            rank_24h_ago=ranks_24h.get(addon_id),
            rank_7d_ago=ranks_7d.get(addon_id),
        )
        for addon_id, rank in current
    }
