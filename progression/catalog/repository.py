"""
Catalog Repository

Read-only lookups against the course catalog: learners, lessons with
their course, quizzes with their questions, and enrollment.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from progression.catalog.models import Enrollment, Learner, Lesson, Quiz
from progression.common.error_handling import AccessDeniedError, NotFoundError
from progression.common.logger import app_logger

# Module logger
logger = app_logger.getChild("catalog.repository")


class CatalogRepository:
    """Lookups used to validate requests before any state changes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_learner(self, learner_id: str) -> Optional[Learner]:
        return await self.session.get(Learner, learner_id)

    async def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        """Get a lesson with its course loaded."""
        return await self.session.get(Lesson, lesson_id)

    async def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        """Get a quiz with its lesson, course and questions loaded."""
        return await self.session.get(Quiz, quiz_id)

    async def is_enrolled(self, learner_id: str, course_id: str) -> bool:
        result = await self.session.execute(
            select(Enrollment.id).where(
                Enrollment.learner_id == learner_id,
                Enrollment.course_id == course_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def require_learner(self, learner_id: str) -> Learner:
        """
        Get a learner or fail.

        Raises:
            NotFoundError: If the learner does not exist
        """
        learner = await self.get_learner(learner_id)
        if learner is None:
            raise NotFoundError("learner", learner_id)
        return learner

    async def require_lesson(self, lesson_id: str) -> Lesson:
        """
        Get a lesson or fail.

        Raises:
            NotFoundError: If the lesson does not exist
        """
        lesson = await self.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("lesson", lesson_id)
        return lesson

    async def require_quiz(self, quiz_id: str) -> Quiz:
        """
        Get a quiz or fail.

        Raises:
            NotFoundError: If the quiz does not exist
        """
        quiz = await self.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("quiz", quiz_id)
        return quiz

    async def require_access(self, learner_id: str, lesson: Lesson, enforce: bool = True) -> None:
        """
        Check that a learner may work on a lesson.

        Args:
            learner_id: Learner identifier
            lesson: Lesson being accessed
            enforce: When False the check is skipped

        Raises:
            AccessDeniedError: If the learner is not enrolled in the lesson's course
        """
        if not enforce:
            return
        if not await self.is_enrolled(learner_id, lesson.course_id):
            logger.warning(f"Learner {learner_id} denied access to lesson {lesson.id}")
            raise AccessDeniedError(
                "Learner is not enrolled in this course",
                details={"learnerId": learner_id, "courseId": lesson.course_id, "lessonId": lesson.id}
            )
