"""
SQLAlchemy Base Configuration

This module provides the SQLAlchemy declarative base shared by every
table of the progression engine.
"""

from typing import Any, Dict

from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

# Configure naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

# Create metadata with naming convention
metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


class ModelBase(Base):
    """Base class for all SQLAlchemy models."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert model instance to a dictionary keyed by column name."""
        return {
            column.name: getattr(self, column.key)
            for column in self.__table__.columns
        }
