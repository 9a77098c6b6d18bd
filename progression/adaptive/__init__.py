"""
Adaptive Package

Real-time difficulty adaptation and next-question orchestration.
"""

from progression.adaptive.difficulty import Difficulty, DifficultyAdjustment, adapt, next_difficulty
from progression.adaptive.models import SessionPerformance, SessionStatus

__all__ = [
    'Difficulty',
    'DifficultyAdjustment',
    'SessionPerformance',
    'SessionStatus',
    'adapt',
    'next_difficulty',
]
