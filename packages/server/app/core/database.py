"""
Database engine and sessions.

Services receive an ``AsyncSession`` explicitly; nothing looks the session
up from request state. PostgreSQL (asyncpg) is the production backend,
SQLite (aiosqlite) serves local runs and tests.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()


def engine_options(url: str) -> dict[str, Any]:
    """Backend-specific engine arguments."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        # One shared connection, or every session would see its own empty database.
        options["poolclass"] = StaticPool
    return options


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **engine_options(settings.database_url),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Create all tables (local runs only; deployments use Alembic)."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_db() -> None:
    """Drop all tables, including the append-only activity trail."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Same unit of work as get_session, for scripts outside a request.
get_session_context = asynccontextmanager(get_session)
