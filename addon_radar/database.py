"""Database connection and session management."""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from addon_radar.config import get_settings

# Base for models
Base = declarative_base()

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Create or return the cached async engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.database_url

        if url.startswith("sqlite"):
            _engine = create_async_engine(
                url,
                echo=settings.debug,
                connect_args={"check_same_thread": False},
            )
        else:
            _engine = create_async_engine(
                url,
                echo=settings.debug,
                pool_pre_ping=True,
                pool_size=5,
                max_overflow=5,
                pool_timeout=30,     # Wait up to 30 seconds for a connection
                pool_recycle=3600,   # Recycle connections after 1 hour
            )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Create or return the cached session factory."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


async def get_session() -> AsyncSession:
    """Dependency for getting database sessions."""
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Create tables that do not exist yet."""
    import addon_radar.models  # noqa: F401  registers tables on Base.metadata

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    """Dispose of the engine on shutdown."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


def dialect_insert(session: AsyncSession, table):
    """Return an INSERT construct supporting ON CONFLICT for the session's dialect."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"upserts are not supported on {dialect}")
    return insert(table)
