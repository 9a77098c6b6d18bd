"""
Mastery Repository

Storage primitives for mastery states and weak areas. Rows are created
with INSERT ... ON CONFLICT so that two concurrent first accesses never
race, and read-modify-write goes through SELECT ... FOR UPDATE.
"""

import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from progression.common.db import dialect_insert
from progression.common.logger import app_logger
from progression.common.utils import utcnow
from progression.mastery.models import (
    DEFAULT_DIFFICULTY,
    DEFAULT_MASTERY_LEVEL,
    MasteryState,
    WeakArea,
    empty_breakdown,
)

# Module logger
logger = app_logger.getChild("mastery.repository")


class MasteryRepository:
    """Row access for MasteryState."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self,
        learner_id: str,
        subject: str,
        grade_level: str,
        for_update: bool = False
    ) -> Optional[MasteryState]:
        """
        Fetch a mastery state without creating it.

        Args:
            learner_id: Learner identifier
            subject: Subject code
            grade_level: Grade level code
            for_update: Lock the row for the rest of the transaction

        Returns:
            The state, or None if it was never created
        """
        stmt = select(MasteryState).where(
            MasteryState.learner_id == learner_id,
            MasteryState.subject == subject,
            MasteryState.grade_level == grade_level,
        ).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        learner_id: str,
        subject: str,
        grade_level: str,
        for_update: bool = False
    ) -> MasteryState:
        """
        Fetch a mastery state, inserting the defaults if it is missing.

        Args:
            learner_id: Learner identifier
            subject: Subject code
            grade_level: Grade level code
            for_update: Lock the row for the rest of the transaction

        Returns:
            The existing or newly created state
        """
        now = utcnow()
        stmt = dialect_insert(self.session, MasteryState).values(
            learner_id=learner_id,
            subject=subject,
            grade_level=grade_level,
            current_difficulty=DEFAULT_DIFFICULTY.value,
            mastery_level=DEFAULT_MASTERY_LEVEL,
            difficulty_breakdown=empty_breakdown(),
            recent_history=[],
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=['learner_id', 'subject', 'grade_level'])
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.info(f"Created mastery state for learner {learner_id} ({subject}/{grade_level})")

        state = await self.get(learner_id, subject, grade_level, for_update=for_update)
        return state

    async def list_for_learner(self, learner_id: str) -> List[MasteryState]:
        result = await self.session.execute(
            select(MasteryState)
            .where(MasteryState.learner_id == learner_id)
            .order_by(MasteryState.subject, MasteryState.grade_level)
        )
        return list(result.scalars())


class WeakAreaRepository:
    """Atomic counters for WeakArea rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_error(
        self,
        learner_id: str,
        subject: str,
        topic: str,
        at: datetime.datetime
    ) -> None:
        """
        Count one wrong answer on a topic, re-opening it if resolved.

        Args:
            learner_id: Learner identifier
            subject: Subject code
            topic: Topic tag of the missed question
            at: Time of the error
        """
        stmt = dialect_insert(self.session, WeakArea).values(
            learner_id=learner_id,
            subject=subject,
            topic=topic,
            error_count=1,
            correct_streak=0,
            last_error_at=at,
            is_resolved=False,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['learner_id', 'subject', 'topic'],
            set_={
                "error_count": WeakArea.__table__.c.error_count + 1,
                "correct_streak": 0,
                "last_error_at": at,
                "is_resolved": False,
                "resolved_at": None,
            }
        )
        await self.session.execute(stmt)

    async def record_success(
        self,
        learner_id: str,
        subject: str,
        topic: str,
        resolve_after: int,
        at: datetime.datetime
    ) -> bool:
        """
        Count one correct answer on an open weak area.

        Args:
            learner_id: Learner identifier
            subject: Subject code
            topic: Topic tag of the answered question
            resolve_after: Correct run that resolves the area
            at: Time of the answer

        Returns:
            True if this answer resolved the area
        """
        match = (
            WeakArea.learner_id == learner_id,
            WeakArea.subject == subject,
            WeakArea.topic == topic,
            WeakArea.is_resolved.is_(False),
        )
        await self.session.execute(
            update(WeakArea)
            .where(*match)
            .values(correct_streak=WeakArea.correct_streak + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            update(WeakArea)
            .where(*match, WeakArea.correct_streak >= resolve_after)
            .values(is_resolved=True, resolved_at=at)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def top(
        self,
        learner_id: str,
        subject: Optional[str] = None,
        limit: int = 3
    ) -> List[WeakArea]:
        """
        Rank weak areas by error count, most recent error first on ties.

        Args:
            learner_id: Learner identifier
            subject: Restrict to one subject when given
            limit: Maximum number of unresolved areas

        Returns:
            Ordered list of weak areas
        """
        stmt = select(WeakArea).where(WeakArea.learner_id == learner_id, WeakArea.is_resolved.is_(False))
        if subject is not None:
            stmt = stmt.where(WeakArea.subject == subject)
        stmt = stmt.order_by(
            WeakArea.error_count.desc(),
            WeakArea.last_error_at.desc(),
            WeakArea.id.desc(),
        ).limit(limit).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return list(result.scalars())
