# backend/database/connection.py

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Convert a sync Postgres URL into an asyncpg one"""
    # postgres:// is deprecated
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    # postgresql:// → postgresql+asyncpg://
    if database_url.startswith("postgresql://") and "+asyncpg" not in database_url:
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return database_url


def create_engine(database_url: str, timeout: float = 3.0, echo: bool = False) -> Optional[AsyncEngine]:
    """Build the async engine for the relational store, or None when unset"""
    if not database_url:
        logger.warning("⚠ DATABASE_URL not set, relational store checks disabled")
        return None

    database_url = normalize_database_url(database_url)

    connect_args = {}
    if "+asyncpg" in database_url:
        connect_args["timeout"] = timeout

    engine = create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=echo,
        connect_args=connect_args,
    )
    logger.info(f"✓ Relational store engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


async def ping_database(engine: AsyncEngine) -> None:
    """Minimal round-trip against the relational store"""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
