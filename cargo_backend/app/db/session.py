"""
Database session configuration.

Builds the async SQLAlchemy engine for the tracking ledgers. PostgreSQL
(asyncpg) in production; SQLite (aiosqlite) is accepted for local runs
and tests, in which case connection pooling options are not applied.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from cargo_backend.app.core.config import settings


def engine_options(database_url: str) -> dict:
    """Engine keyword arguments appropriate for the database backend."""
    options = {"echo": settings.db_echo, "future": True}
    if make_url(database_url).get_backend_name() != "sqlite":
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def create_tables(bind=None):
    """Create every registered table (idempotent)."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields one session per request; the tracking services own commit and
    rollback, this only guarantees the session is closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
