"""
Gamification Models

This module defines the ledger tables and the XP/level mechanics:
1. LearnerProfile: XP total, level and daily streak of a learner
2. XPLedgerEntry: one applied XP award, unique per idempotency key
3. Badge / BadgeAward: badge catalog and ownership, unique per learner and badge
4. The level table and XP reward table
"""

import bisect
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column, String, Integer, Text, Date, DateTime, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship

from progression.common.serialization import SerializableMixin
from progression.common.utils import percentage, utcnow
from progression.database.base import ModelBase


class XPSource(enum.Enum):
    """Sources of XP in the ledger."""
    QUIZ_PERFECT = "quiz_perfect"
    QUIZ_PASSED = "quiz_passed"
    QUIZ_COMPLETED = "quiz_completed"
    DAILY_STREAK = "daily_streak"
    BADGE_EARNED = "badge_earned"

    @property
    def xp_reward(self) -> int:
        """Fixed reward for this source; badge rewards come from the badge."""
        return XP_REWARDS.get(self, 0)


XP_REWARDS: Dict[XPSource, int] = {
    XPSource.QUIZ_PERFECT: 200,
    XPSource.QUIZ_PASSED: 100,
    XPSource.QUIZ_COMPLETED: 20,
    XPSource.DAILY_STREAK: 25,
}


class BadgeCategory(enum.Enum):
    """Display groups for badges."""
    PROGRESS = "progress"
    STREAK = "streak"
    QUIZ = "quiz"
    ACHIEVEMENT = "achievement"


# Minimum XP of each level; level N starts at LEVEL_THRESHOLDS[N - 1]
LEVEL_THRESHOLDS: List[int] = [
    0, 100, 300, 600, 1000, 1500, 2100, 2800, 3600, 4500,
    5500, 6600, 7800, 9100, 10500,
]

MAX_LEVEL = len(LEVEL_THRESHOLDS)


def calculate_level(xp: int) -> int:
    """
    Level reached with a given XP total.

    Monotonic non-decreasing in ``xp``; negative totals map to level 1.

    Args:
        xp: XP total

    Returns:
        Level between 1 and MAX_LEVEL
    """
    return max(1, bisect.bisect_right(LEVEL_THRESHOLDS, xp))


@dataclass
class LevelProgress(SerializableMixin):
    """Progress of an XP total through its current level."""

    __serializable_fields__ = [
        "level",
        ("xp_in_level", "xpInLevel"),
        ("xp_for_level", "xpForLevel"),
        ("xp_to_next_level", "xpToNextLevel"),
        "progress",
    ]

    level: int
    xp_in_level: int
    xp_for_level: int
    xp_to_next_level: int
    progress: int

    @classmethod
    def for_xp(cls, xp: int) -> 'LevelProgress':
        """
        Compute level progress for an XP total.

        At the maximum level there is no next threshold and progress is 100.
        """
        level = calculate_level(xp)
        floor = LEVEL_THRESHOLDS[level - 1]
        if level >= MAX_LEVEL:
            return cls(level=level, xp_in_level=max(0, xp - floor), xp_for_level=0,
                       xp_to_next_level=0, progress=100)

        ceiling = LEVEL_THRESHOLDS[level]
        xp_in_level = max(0, xp - floor)
        return cls(
            level=level,
            xp_in_level=xp_in_level,
            xp_for_level=ceiling - floor,
            xp_to_next_level=ceiling - max(xp, floor),
            progress=percentage(xp_in_level, ceiling - floor),
        )


class LearnerProfile(ModelBase):
    """
    Ledger state of one learner.

    Mutated only through the gamification ledger.
    """
    __tablename__ = 'learner_profiles'

    learner_id = Column(String(64), primary_key=True)
    xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    current_streak = Column(Integer, nullable=False, default=0)
    best_streak = Column(Integer, nullable=False, default=0)
    last_activity_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class XPLedgerEntry(ModelBase):
    """An applied XP award. The idempotency key makes each award at-most-once."""
    __tablename__ = 'xp_ledger'

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    source = Column(String(32), nullable=True)
    reason = Column(String(255), nullable=False)
    idempotency_key = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('idempotency_key'),
    )


class Badge(ModelBase):
    """
    A badge in the catalog.

    ``criterion`` holds a tagged predicate, e.g.
    ``{"kind": "count", "metric": "quizzes_completed", "threshold": 1}``.
    """
    __tablename__ = 'badges'

    code = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(32), nullable=False, default=BadgeCategory.ACHIEVEMENT.value)
    xp_reward = Column(Integer, nullable=False, default=0)
    criterion = Column(JSON, nullable=False)


class BadgeAward(ModelBase):
    """Ownership of a badge; a learner holds each badge at most once."""
    __tablename__ = 'badge_awards'

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False, index=True)
    badge_code = Column(String(64), ForeignKey('badges.code'), nullable=False)
    awarded_at = Column(DateTime, default=utcnow, nullable=False)

    badge = relationship("Badge", lazy="joined")

    __table_args__ = (
        UniqueConstraint('learner_id', 'badge_code'),
    )

    def to_response(self) -> Dict[str, Any]:
        return {
            "code": self.badge_code,
            "name": self.badge.name if self.badge else self.badge_code,
            "category": self.badge.category if self.badge else None,
            "awardedAt": self.awarded_at.isoformat() if self.awarded_at else None,
        }


@dataclass
class StreakUpdate(SerializableMixin):
    """Outcome of recording a day of activity."""

    __serializable_fields__ = [
        ("streak_updated", "streakUpdated"),
        ("current_streak", "currentStreak"),
        ("best_streak", "bestStreak"),
    ]

    streak_updated: bool
    current_streak: int
    best_streak: int = 0
    last_activity_date: Optional[Any] = None
