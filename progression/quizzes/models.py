"""
SQLAlchemy ORM models for quiz results.

- QuizAttempt: immutable record of one graded submission
- LessonProgress: per (learner, lesson) completion and best quiz score
"""

from typing import Any, Dict

from sqlalchemy import (
    Column, String, Integer, Text, Boolean, DateTime, ForeignKey, JSON, Index, UniqueConstraint
)

from progression.common.utils import utcnow
from progression.database.base import ModelBase


class QuizAttempt(ModelBase):
    """
    One graded quiz submission.

    The primary key is the attempt id, so the same attempt can only ever
    be recorded once. Rows are never updated after their transaction
    commits.
    """
    __tablename__ = 'quiz_attempts'

    id = Column(String(64), primary_key=True)
    learner_id = Column(String(64), nullable=False)
    quiz_id = Column(String(64), ForeignKey('quizzes.id'), nullable=False)
    lesson_id = Column(String(64), ForeignKey('lessons.id'), nullable=False)
    score = Column(Integer, nullable=False)
    total_points = Column(Integer, nullable=False)
    percentage = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    is_perfect = Column(Boolean, nullable=False)
    correct_count = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    answers = Column(JSON, nullable=False)
    xp_earned = Column(Integer, nullable=False, default=0)
    new_badges = Column(JSON, nullable=False, default=list)
    time_spent = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False)
    feedback = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_quiz_attempt_learner', 'learner_id', 'completed_at'),
    )

    def to_result(self) -> Dict[str, Any]:
        """Render in the camelCase shape of the submit response."""
        return {
            "attemptId": self.id,
            "score": self.score,
            "totalPoints": self.total_points,
            "percentage": self.percentage,
            "passed": self.passed,
            "isPerfect": self.is_perfect,
            "correctCount": self.correct_count,
            "totalQuestions": self.total_questions,
            "answers": list(self.answers or []),
            "xpEarned": self.xp_earned,
            "newBadges": list(self.new_badges or []),
            "feedback": self.feedback,
        }


class LessonProgress(ModelBase):
    """Progress of a learner on a lesson."""
    __tablename__ = 'lesson_progress'

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False)
    lesson_id = Column(String(64), ForeignKey('lessons.id'), nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    quiz_score = Column(Integer, nullable=True)
    time_spent = Column(Integer, nullable=False, default=0)
    last_accessed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('learner_id', 'lesson_id'),
    )
