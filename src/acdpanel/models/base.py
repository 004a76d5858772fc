"""Database base configuration."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from acdpanel.config import settings

Base = declarative_base()


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Create an async engine for the configured (or given) database URL."""
    return create_async_engine(
        url or settings.database_url,
        echo=settings.debug,
        future=True,
        **kwargs,
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

