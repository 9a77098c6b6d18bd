"""
Gamification Package

This package provides the learner ledger:
- XP awards keyed by the event that triggered them
- Levels derived from the XP total
- Daily streaks
- Data-driven badges
"""

from progression.gamification.service import GamificationLedger, advance_streak

__all__ = ['GamificationLedger', 'advance_streak']
