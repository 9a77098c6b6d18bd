"""
Database Session Management

This module provides the unit of work used by every write path: one
session, one transaction, all-or-nothing.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from progression.common.error_handling import DatabaseError
from progression.common.logger import app_logger

# Set up logging
logger = app_logger.getChild("db.session")

SessionFactory = Callable[[], AsyncSession]


@asynccontextmanager
async def unit_of_work(session_factory: SessionFactory) -> AsyncIterator[AsyncSession]:
    """
    Open a session and a single transaction around a block of work.

    The transaction commits when the block exits normally. Any exception
    rolls back every write made in the block; SQLAlchemy failures are
    re-raised as DatabaseError.

    Args:
        session_factory: Factory producing AsyncSession instances

    Yields:
        AsyncSession: The session bound to the open transaction

    Example:
        async with unit_of_work(factory) as session:
            await session.execute(stmt)
    """
    async with session_factory() as session:
        try:
            async with session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Transaction rolled back: {e}")
            raise DatabaseError("Transaction failed and was rolled back", cause=e) from e


@asynccontextmanager
async def read_session(session_factory: SessionFactory) -> AsyncIterator[AsyncSession]:
    """
    Open a session for read-only queries.

    Args:
        session_factory: Factory producing AsyncSession instances

    Yields:
        AsyncSession: The database session
    """
    async with session_factory() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Database read failed: {e}")
            raise DatabaseError("Database read failed", cause=e) from e
