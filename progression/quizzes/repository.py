"""
Quiz Repository

Write-once storage of quiz attempts and atomic upserts of lesson progress.
"""

import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from progression.common.db import dialect_insert
from progression.quizzes.models import LessonProgress, QuizAttempt


class QuizRepository:
    """Row access for attempts and lesson progress."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_attempt(self, attempt_id: str) -> Optional[QuizAttempt]:
        return await self.session.get(QuizAttempt, attempt_id, populate_existing=True)

    async def insert_attempt(self, values: Dict[str, Any]) -> bool:
        """
        Record an attempt unless its id already exists.

        Args:
            values: Column values, including the attempt ``id``

        Returns:
            True if the attempt was inserted, False if it was already recorded
        """
        stmt = dialect_insert(self.session, QuizAttempt).values(**values).on_conflict_do_nothing(
            index_elements=['id']
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def set_attempt_badges(self, attempt_id: str, badges: List[Dict[str, Any]]) -> None:
        """Attach the badges earned by an attempt before its transaction commits."""
        table = QuizAttempt.__table__
        await self.session.execute(
            update(table).where(table.c.id == attempt_id).values(new_badges=badges)
        )

    async def upsert_progress(
        self,
        learner_id: str,
        lesson_id: str,
        passed: bool,
        score: int,
        time_spent: int,
        at: datetime.datetime
    ) -> None:
        """
        Merge an attempt into the learner's lesson progress.

        Completion is sticky, the quiz score only ever rises, time spent
        accumulates and the last access time is refreshed.

        Args:
            learner_id: Learner identifier
            lesson_id: Lesson of the quiz
            passed: Whether the attempt passed
            score: Percentage of the attempt
            time_spent: Seconds spent on the attempt
            at: Completion time of the attempt
        """
        table = LessonProgress.__table__
        stmt = dialect_insert(self.session, LessonProgress).values(
            learner_id=learner_id,
            lesson_id=lesson_id,
            is_completed=passed,
            completed_at=at if passed else None,
            quiz_score=score,
            time_spent=time_spent,
            last_accessed_at=at,
        )

        set_ = {
            "quiz_score": case(
                (or_(table.c.quiz_score.is_(None), table.c.quiz_score < score), score),
                else_=table.c.quiz_score,
            ),
            "time_spent": table.c.time_spent + time_spent,
            "last_accessed_at": at,
        }
        if passed:
            set_["is_completed"] = True
            set_["completed_at"] = func.coalesce(table.c.completed_at, at)

        stmt = stmt.on_conflict_do_update(index_elements=['learner_id', 'lesson_id'], set_=set_)
        await self.session.execute(stmt)

    async def get_progress(self, learner_id: str, lesson_id: str) -> Optional[LessonProgress]:
        result = await self.session.execute(
            select(LessonProgress).where(
                LessonProgress.learner_id == learner_id,
                LessonProgress.lesson_id == lesson_id,
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
