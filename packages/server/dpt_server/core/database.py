"""
Async engine and session handling for the tracker database.

Postgres (asyncpg) in production; the test suite points ``DPT_DATABASE_URL``
at a SQLite file through aiosqlite.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from dpt_server.core.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    options: dict = {"echo": settings.debug}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=5)
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# Objects stay readable after commit; services return them to the API layer
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Create missing tables. Used for local runs and tests only."""
    import dpt_server.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def get_session_context():
    """Session scope for work outside a request, such as worker tasks."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with get_session_context() as session:
        yield session
