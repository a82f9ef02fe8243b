"""Database engine and sessions.

Request handlers get a session through the ``get_db`` dependency and commit
themselves.  Background workflows run after the response is sent, so they
open their own sessions from ``async_session_maker``.
"""
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import get_settings
from .models import Base

settings = get_settings()


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {
        "echo": settings.database_echo,
        "pool_pre_ping": True,
    }
    if database_url.startswith("sqlite"):
        return options

    # Provider retries arrive in bursts; keep enough connections for them
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=10,
        pool_recycle=3600,
    )
    if settings.is_production:
        options["connect_args"] = {"ssl": "require"}
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Per-request session; anything left uncommitted by a failed handler is rolled back."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables (development only; deployed databases are migrated)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
