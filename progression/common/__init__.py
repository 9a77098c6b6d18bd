"""
Common Components

Infrastructure shared by every area of the engine:
1. Logging - Centralized logging configuration
2. Error Handling - The engine's exception hierarchy
3. Serialization - JSON rendering of domain objects
4. Database - Unit of work and dialect-aware upserts
"""

from progression.common.logger import app_logger

__all__ = ['app_logger']
