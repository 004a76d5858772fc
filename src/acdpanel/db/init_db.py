"""Database initialization script."""

import asyncio

import structlog
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

# Import models to register them with Base
from acdpanel.models import AcdModelRun, DexPool, PoolDailyMetric  # noqa: F401
from acdpanel.models.base import Base, create_engine

logger = structlog.get_logger()


async def init_db(engine: AsyncEngine) -> list[str]:
    """Create all panel tables and return the table names now present."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    logger.info("Database tables created", tables=tables)
    return tables


async def drop_db(engine: AsyncEngine) -> None:
    """Drop all panel tables (use with caution!)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("All panel tables dropped")


async def main():
    engine = create_engine()
    try:
        await init_db(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    print("Initializing ACD panel database...")
    asyncio.run(main())
