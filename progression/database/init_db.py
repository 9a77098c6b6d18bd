"""
Database initialization and connection management.

This module provides functions for:
1. Initializing the async engine and session factory
2. Creating the schema and seeding the badge catalog
3. Closing the engine on shutdown
"""

from typing import Iterable, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from progression.common.db import SessionFactory, unit_of_work
from progression.common.logger import app_logger
from progression.database.base import metadata
from progression.gamification.badges import DEFAULT_BADGES, BadgeDefinition
from progression.gamification.repository import GamificationRepository

# Setup module logger
logger = app_logger.getChild("database.init_db")

# Global engine instance
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[SessionFactory] = None


def get_session_factory() -> SessionFactory:
    """Get the session factory bound to the global engine."""
    if _session_factory is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _session_factory


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30
) -> AsyncEngine:
    """
    Create an async engine suited to the database backend.

    In-memory SQLite shares one connection across the process; other
    SQLite files use the driver's default pool; server databases get a
    sized pool.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return create_async_engine(
                database_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(database_url, echo=echo)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Session factory whose objects stay readable after commit."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def initialize_database(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> AsyncEngine:
    """
    Initialize the async database engine.

    Args:
        database_url: Database connection URL
        echo: Whether to echo SQL statements
        pool_size: Connection pool size
        max_overflow: Maximum number of connections to allow above pool_size
        pool_timeout: Timeout for getting a connection from the pool

    Returns:
        AsyncEngine instance
    """
    global _engine, _session_factory

    try:
        logger.info(f"Initializing database with URL: {database_url[:10]}... and pool size: {pool_size}")

        _engine = build_engine(database_url, echo, pool_size, max_overflow, pool_timeout)
        _session_factory = build_session_factory(_engine)

        # Test connection
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("Database engine initialized successfully")
        return _engine

    except Exception as e:
        logger.error(f"Failed to initialize async database: {str(e)}")
        raise


async def create_schema(engine: AsyncEngine) -> None:
    """
    Create every table known to the metadata.

    Deployed databases are migrated with Alembic instead; this is used for
    SQLite development databases and tests.
    """
    # Register every model with the metadata
    import progression.catalog.models  # noqa: F401
    import progression.gamification.models  # noqa: F401
    import progression.mastery.models  # noqa: F401
    import progression.quizzes.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info(f"Schema ready ({len(metadata.tables)} tables)")


async def seed_badges(
    session_factory: SessionFactory,
    badges: Iterable[BadgeDefinition] = DEFAULT_BADGES
) -> int:
    """
    Insert the badge catalog entries that are missing.

    Returns:
        Number of badges inserted
    """
    async with unit_of_work(session_factory) as session:
        inserted = await GamificationRepository(session).seed_badges(badges)
    if inserted:
        logger.info(f"Seeded {inserted} badge(s)")
    return inserted


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _session_factory

    if _engine:
        try:
            await _engine.dispose()
            _engine = None
            _session_factory = None
            logger.info("Database engine closed successfully")
        except Exception as e:
            logger.error(f"Error closing database engine: {str(e)}")
            raise
