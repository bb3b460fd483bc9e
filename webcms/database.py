"""
Database engine and session factory for webcms.

Request handlers get a plain read session from ``get_db``. Services that
write open their own sessions from ``async_session_maker`` and run each
operation inside a unit of work (see ``webcms.services.transactions``).
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from webcms.config import settings
from webcms.models import Base


def async_database_url(url: str) -> str:
    """Point a plain postgres URL at the asyncpg driver."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def create_engine_from_settings() -> AsyncEngine:
    return create_async_engine(
        async_database_url(settings.DATABASE_URL),
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


engine = create_engine_from_settings()

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting a read session."""
    async with async_session_maker() as session:
        yield session


async def init_db() -> None:
    """Create missing tables. Migrations remain the source of truth in production."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
