"""
SQLAlchemy ORM models for the course catalog.

The catalog is owned by the surrounding product; the engine only reads it
to resolve lesson metadata, quiz definitions and enrollment:
- Learner: a learner identity
- Course: a subject taught at a grade level
- Lesson: a unit of a course
- Enrollment: grants a learner access to a course
- Quiz / QuizQuestion: a static quiz attached to a lesson
"""

import uuid

from sqlalchemy import (
    Column, String, Integer, Text, DateTime, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship

from progression.common.utils import utcnow
from progression.database.base import ModelBase


def _new_id() -> str:
    return str(uuid.uuid4())


class Learner(ModelBase):
    """A learner identity, resolved before any request reaches the engine."""
    __tablename__ = 'learners'

    id = Column(String(64), primary_key=True, default=_new_id)
    display_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Course(ModelBase):
    """A course teaches one subject at one grade level."""
    __tablename__ = 'courses'

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    subject = Column(String(64), nullable=False, index=True)
    grade_level = Column(String(32), nullable=False)

    lessons = relationship("Lesson", back_populates="course", order_by="Lesson.position")


class Lesson(ModelBase):
    """A lesson within a course."""
    __tablename__ = 'lessons'

    id = Column(String(64), primary_key=True, default=_new_id)
    course_id = Column(String(64), ForeignKey('courses.id'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)

    course = relationship("Course", back_populates="lessons", lazy="joined")


class Enrollment(ModelBase):
    """Access grant of a learner to a course."""
    __tablename__ = 'enrollments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), ForeignKey('learners.id'), nullable=False)
    course_id = Column(String(64), ForeignKey('courses.id'), nullable=False)
    enrolled_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('learner_id', 'course_id'),
    )


class Quiz(ModelBase):
    """A static quiz attached to a lesson."""
    __tablename__ = 'quizzes'

    id = Column(String(64), primary_key=True, default=_new_id)
    lesson_id = Column(String(64), ForeignKey('lessons.id'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    passing_score = Column(Integer, nullable=False, default=70)

    lesson = relationship("Lesson", lazy="joined")
    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.position",
        lazy="selectin"
    )


class QuizQuestion(ModelBase):
    """
    One question of a quiz.

    ``options`` holds a list of ``{"id", "text", "isCorrect"}`` objects;
    exactly one option is flagged correct.
    """
    __tablename__ = 'quiz_questions'

    id = Column(String(64), primary_key=True, default=_new_id)
    quiz_id = Column(String(64), ForeignKey('quizzes.id'), nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    options = Column(JSON, nullable=False, default=list)
    points = Column(Integer, nullable=False, default=10)
    difficulty = Column(String(16), nullable=False, default="medium")
    topic = Column(String(128), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    quiz = relationship("Quiz", back_populates="questions")

    @property
    def correct_option_id(self):
        """Identifier of the option flagged correct, if any."""
        for option in self.options or []:
            if option.get("isCorrect"):
                return option.get("id")
        return None
