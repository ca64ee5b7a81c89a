"""Atomic addon + snapshot write path."""
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from addon_radar.collectors.schemas import Mod
from addon_radar.database import dialect_insert
from addon_radar.errors import WriteConsistencyError
from addon_radar.models import Addon, Snapshot, ADDON_STATUS_ACTIVE

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Persist one addon's current state and its history point together.

    Each call runs in its own transaction: either both the addon row and the
    new snapshot are committed, or neither is and WriteConsistencyError is
    raised for that addon only.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def write(self, mod: Mod, recorded_at: datetime):
        async with self.session_maker() as session:
            try:
                async with session.begin():
                    await self._upsert_addon(session, mod, recorded_at)
                    await self._append_snapshot(session, mod, recorded_at)
            except SQLAlchemyError as e:
                raise WriteConsistencyError(mod.id, str(e)) from e

    async def _upsert_addon(self, session: AsyncSession, mod: Mod, recorded_at: datetime):
        author = mod.primary_author
        values = {
            "id": mod.id,
            "name": mod.name,
            "slug": mod.slug,
            "summary": mod.summary or None,
            "author_name": author.name if author else None,
            "author_id": author.id if author else None,
            "logo_url": mod.logo_url,
            "primary_category_id": mod.primary_category_id,
            "categories": mod.category_ids,
            "game_versions": mod.game_versions,
            "created_at": mod.date_created,
            "last_updated_at": mod.date_modified,
            "last_synced_at": recorded_at,
            "status": ADDON_STATUS_ACTIVE,
            "download_count": mod.download_count,
            "thumbs_up_count": mod.thumbs_up_count,
            "popularity_rank": mod.popularity_rank,
            "rating": round(mod.rating, 2) if mod.rating > 0 else None,
            "latest_file_date": mod.latest_file_date,
        }

        stmt = dialect_insert(session, Addon).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Addon.id],
            # created_at is set once, on first sight
            set_={k: getattr(stmt.excluded, k) for k in values if k not in ("id", "created_at")},
        )
        await session.execute(stmt)

    async def _append_snapshot(self, session: AsyncSession, mod: Mod, recorded_at: datetime):
        session.add(Snapshot(
            addon_id=mod.id,
            recorded_at=recorded_at,
            download_count=mod.download_count,
            thumbs_up_count=mod.thumbs_up_count,
            popularity_rank=mod.popularity_rank,
            rating=round(mod.rating, 2) if mod.rating > 0 else None,
            latest_file_date=mod.latest_file_date,
        ))
        await session.flush()
