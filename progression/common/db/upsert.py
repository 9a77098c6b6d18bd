"""
Dialect-aware INSERT helpers

PostgreSQL and SQLite both support ``INSERT ... ON CONFLICT``; the
statement class lives in the dialect package, so the right one is picked
from the session's bind.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(session: AsyncSession, model: Any):
    """
    Build an INSERT supporting ``on_conflict_do_nothing/do_update``.

    Args:
        session: Session whose bind decides the dialect
        model: Mapped class or Table to insert into; mapped classes are
            reduced to their Table so the result exposes rowcount

    Returns:
        Dialect-specific Insert construct

    Raises:
        NotImplementedError: For dialects without ON CONFLICT support
    """
    name = session.bind.dialect.name
    table = getattr(model, "__table__", model)
    try:
        return _INSERTS[name](table)
    except KeyError:
        raise NotImplementedError(f"ON CONFLICT inserts are not supported on {name}")
