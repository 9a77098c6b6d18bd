"""
Database Module

Session, transaction and upsert helpers for the engine's repositories.
"""

from progression.common.db.session import (
    SessionFactory,
    read_session,
    unit_of_work,
)
from progression.common.db.upsert import dialect_insert

__all__ = [
    'SessionFactory',
    'dialect_insert',
    'read_session',
    'unit_of_work',
]
