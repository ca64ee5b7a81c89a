"""Snapshot writer tests."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from addon_radar.collectors.schemas import Mod
from addon_radar.errors import WriteConsistencyError
from addon_radar.models import Addon, Snapshot, ADDON_STATUS_ACTIVE, ADDON_STATUS_INACTIVE
from addon_radar.pipeline.writer import SnapshotWriter
from addon_radar.utils import ensure_utc


class FailingSnapshotWriter(SnapshotWriter):
    """Writer whose snapshot insert always fails after the addon upsert."""

    async def _append_snapshot(self, session, mod, recorded_at):
        raise OperationalError("INSERT INTO snapshots", {}, Exception("disk I/O error"))


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestSnapshotWriter:
    """Test the atomic addon + snapshot write."""

    async def test_writes_addon_and_snapshot(self, session_maker, db_session, mod_payload, now):
        mod = Mod.model_validate(mod_payload(42, downloads=1234))
        await SnapshotWriter(session_maker).write(mod, now)

        addon = await db_session.get(Addon, 42)
        assert addon.name == "Addon 42"
        assert addon.download_count == 1234
        assert addon.author_name == "someone"
        assert addon.categories == [5]
        assert addon.game_versions == ["11.0.0", "11.0.2"]
        assert addon.status == ADDON_STATUS_ACTIVE
        assert ensure_utc(addon.last_synced_at) == now

        snapshots = (await db_session.execute(select(Snapshot))).scalars().all()
        assert len(snapshots) == 1
        assert snapshots[0].addon_id == 42
        assert snapshots[0].download_count == 1234
        assert ensure_utc(snapshots[0].recorded_at) == now

    async def test_second_write_updates_addon_and_appends(self, session_maker, db_session, mod_payload, now):
        writer = SnapshotWriter(session_maker)
        await writer.write(Mod.model_validate(mod_payload(42, downloads=1000)), now)
        await writer.write(
            Mod.model_validate(mod_payload(42, downloads=1500, dateCreated="2025-06-01T00:00:00Z")),
            now + timedelta(hours=1),
        )

        addon = await db_session.get(Addon, 42)
        assert addon.download_count == 1500
        # First-seen creation date is kept
        assert ensure_utc(addon.created_at).year == 2024
        assert await count(db_session, Snapshot) == 2

    async def test_reactivates_inactive_addon(self, session_maker, db_session, mod_payload, now):
        db_session.add(Addon(id=42, name="Old", slug="old", status=ADDON_STATUS_INACTIVE))
        await db_session.commit()

        await SnapshotWriter(session_maker).write(Mod.model_validate(mod_payload(42)), now)

        db_session.expire_all()
        addon = await db_session.get(Addon, 42)
        assert addon.status == ADDON_STATUS_ACTIVE
        assert addon.name == "Addon 42"

    async def test_failed_snapshot_rolls_back_addon(self, session_maker, db_session, mod_payload, now):
        with pytest.raises(WriteConsistencyError) as exc_info:
            await FailingSnapshotWriter(session_maker).write(Mod.model_validate(mod_payload(42)), now)

        assert exc_info.value.addon_id == 42
        assert await count(db_session, Addon) == 0
        assert await count(db_session, Snapshot) == 0

    async def test_failed_write_leaves_previous_state(self, session_maker, db_session, mod_payload, now):
        await SnapshotWriter(session_maker).write(Mod.model_validate(mod_payload(42, downloads=1000)), now)

        with pytest.raises(WriteConsistencyError):
            await FailingSnapshotWriter(session_maker).write(
                Mod.model_validate(mod_payload(42, downloads=9999)), now + timedelta(hours=1)
            )

        db_session.expire_all()
        addon = await db_session.get(Addon, 42)
        assert addon.download_count == 1000
        assert await count(db_session, Snapshot) == 1
