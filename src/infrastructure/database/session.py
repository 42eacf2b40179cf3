"""Async engine and session factory."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings


def _connect_args(url: str) -> dict[str, Any]:
    # asyncpg enforces the per-statement timeout itself
    if "+asyncpg" in url:
        return {"command_timeout": settings.database_timeout_seconds}
    return {}


engine = create_async_engine(
    settings.async_database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_timeout=settings.database_timeout_seconds,
    connect_args=_connect_args(settings.async_database_url),
)

# Units of work open one session each from here
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for reads outside a unit of work, e.g. health probes."""
    async with async_session_factory() as session:
        yield session
