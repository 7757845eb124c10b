"""
Database engine and session management.

PostgreSQL (asyncpg) in deployment, SQLite (aiosqlite) in tests.  Routes get a
request-scoped session from ``get_db``; background ingestion opens its own
sessions from ``AsyncSessionLocal`` through ``SqlDocumentStore``.
"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator
import logging

from app.config import settings

logger = logging.getLogger(__name__)

_IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=not _IS_SQLITE,
    poolclass=NullPool,  # connections are not shared across event loops
)

if _IS_SQLITE:
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _record):
        # ON DELETE CASCADE is off by default in SQLite
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Objects stay readable after commit: the upload route returns the document
# it just committed.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.  Commits when the route returns, rolls back and
    re-raises when it fails.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error("Rolled back database session: %s", exc)
            raise


async def init_db() -> None:
    """Create any missing tables (users, projects, documents, analyses, comments)."""
    from app.models import database_models  # noqa: F401  registers the tables

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


async def close_db() -> None:
    await engine.dispose()
    logger.info("Database connections closed")
