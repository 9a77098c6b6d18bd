"""
Database Module

This module provides the declarative base shared by every model.
"""

from progression.database.base import Base, ModelBase, metadata

__all__ = ['Base', 'ModelBase', 'metadata']
