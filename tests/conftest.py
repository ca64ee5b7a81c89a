"""Shared test fixtures."""
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import addon_radar.models  # noqa: F401  registers tables on Base.metadata
from addon_radar.config import Settings
from addon_radar.database import Base

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        curseforge_api_key="test-key",
        curseforge_base_url="https://api.curseforge.test",
        database_url="sqlite+aiosqlite:///:memory:",
        api_secret_key="test-secret",
        max_retries=3,
        backoff_base_seconds=1.0,
        circuit_breaker_threshold=10,
        page_size=50,
        page_delay_seconds=0.05,
    )


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session bound to the test engine."""
    async with session_maker() as session:
        yield session


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, delay: float):
        self.calls.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def _mod_payload(mod_id: int, downloads: int = 1000, **overrides) -> dict:
    """A search result entry shaped like the CurseForge API returns it."""
    payload = {
        "id": mod_id,
        "name": f"Addon {mod_id}",
        "slug": f"addon-{mod_id}",
        "summary": "Does things",
        "downloadCount": float(downloads),
        "thumbsUpCount": 10,
        "rating": 4.5,
        "popularityRank": mod_id,
        "dateCreated": "2024-01-01T00:00:00Z",
        "dateModified": "2026-10-01T00:00:00Z",
        "categories": [{"id": 5, "name": "Bags", "slug": "bags"}],
        "authors": [{"id": 77, "name": "someone"}],
        "logo": {"thumbnailUrl": "https://media.example/logo.png"},
        "latestFiles": [
            {"id": 1, "fileDate": "2026-10-01T00:00:00Z", "gameVersions": ["11.0.2", "11.0.0"]},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def mod_payload():
    return _mod_payload


@pytest.fixture
def now() -> datetime:
    return NOW
