"""
SQLAlchemy ORM models for long-run learner competence.

- MasteryState: per (learner, subject, grade) aggregate, merged at session commit
- WeakArea: per (learner, subject, topic) error counter
"""

from typing import Any, Dict

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, JSON, Index, UniqueConstraint
)

from progression.adaptive.difficulty import Difficulty
from progression.common.utils import percentage, utcnow
from progression.database.base import ModelBase

DEFAULT_DIFFICULTY = Difficulty.MEDIUM
DEFAULT_MASTERY_LEVEL = 50


def empty_breakdown() -> Dict[str, Dict[str, int]]:
    """Per-difficulty answer counts with every tier present."""
    return {level.value: {"total": 0, "correct": 0} for level in Difficulty}


class MasteryState(ModelBase):
    """
    Long-run mastery of a learner for one subject at one grade level.

    Created lazily on first access and mutated only when a session is
    committed.
    """
    __tablename__ = 'mastery_states'

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False)
    subject = Column(String(64), nullable=False)
    grade_level = Column(String(32), nullable=False)

    current_difficulty = Column(String(16), nullable=False, default=DEFAULT_DIFFICULTY.value)
    mastery_level = Column(Integer, nullable=False, default=DEFAULT_MASTERY_LEVEL)
    total_sessions = Column(Integer, nullable=False, default=0)
    total_questions_answered = Column(Integer, nullable=False, default=0)
    total_correct = Column(Integer, nullable=False, default=0)
    total_wrong = Column(Integer, nullable=False, default=0)
    best_streak = Column(Integer, nullable=False, default=0)
    consecutive_correct = Column(Integer, nullable=False, default=0)
    consecutive_wrong = Column(Integer, nullable=False, default=0)
    difficulty_breakdown = Column(JSON, nullable=False, default=empty_breakdown)
    recent_history = Column(JSON, nullable=False, default=list)
    last_session_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('learner_id', 'subject', 'grade_level'),
    )

    @property
    def difficulty(self) -> Difficulty:
        return Difficulty(self.current_difficulty)

    @property
    def accuracy(self) -> int:
        """Lifetime accuracy as an integer percentage."""
        return percentage(self.total_correct, self.total_questions_answered)

    def to_response(self) -> Dict[str, Any]:
        """Render in the camelCase shape returned by the mastery query."""
        return {
            "learnerId": self.learner_id,
            "subject": self.subject,
            "gradeLevel": self.grade_level,
            "currentDifficulty": self.current_difficulty,
            "masteryLevel": self.mastery_level,
            "totalSessions": self.total_sessions,
            "totalQuestionsAnswered": self.total_questions_answered,
            "totalCorrect": self.total_correct,
            "totalWrong": self.total_wrong,
            "bestStreak": self.best_streak,
            "consecutiveCorrect": self.consecutive_correct,
            "consecutiveWrong": self.consecutive_wrong,
            "accuracy": self.accuracy,
            "difficultyBreakdown": self.difficulty_breakdown or empty_breakdown(),
            "recentHistory": list(self.recent_history or []),
            "lastSessionAt": self.last_session_at.isoformat() if self.last_session_at else None,
        }

    @classmethod
    def defaults(cls, learner_id: str, subject: str, grade_level: str) -> 'MasteryState':
        """Transient, unsaved state carrying the lazy-creation defaults."""
        return cls(
            learner_id=learner_id,
            subject=subject,
            grade_level=grade_level,
            current_difficulty=DEFAULT_DIFFICULTY.value,
            mastery_level=DEFAULT_MASTERY_LEVEL,
            total_sessions=0,
            total_questions_answered=0,
            total_correct=0,
            total_wrong=0,
            best_streak=0,
            consecutive_correct=0,
            consecutive_wrong=0,
            difficulty_breakdown=empty_breakdown(),
            recent_history=[],
        )


class WeakArea(ModelBase):
    """A topic a learner keeps getting wrong."""
    __tablename__ = 'weak_areas'

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False)
    subject = Column(String(64), nullable=False)
    topic = Column(String(128), nullable=False)
    error_count = Column(Integer, nullable=False, default=0)
    correct_streak = Column(Integer, nullable=False, default=0)
    last_error_at = Column(DateTime, nullable=True)
    is_resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint('learner_id', 'subject', 'topic'),
        Index('idx_weak_area_ranking', 'learner_id', 'subject', 'is_resolved', 'error_count'),
    )

    def to_response(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "topic": self.topic,
            "errorCount": self.error_count,
            "lastErrorAt": self.last_error_at.isoformat() if self.last_error_at else None,
            "isResolved": self.is_resolved,
        }
