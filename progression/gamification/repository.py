"""
Gamification Repository

Storage primitives for the ledger. Every write that must happen at most
once is an INSERT guarded by a unique constraint; the caller learns from
the affected row count whether it won.
"""

import datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from progression.common.db import dialect_insert
from progression.common.logger import app_logger
from progression.common.utils import utcnow
from progression.gamification.badges import BadgeDefinition, LearnerStats
from progression.gamification.models import (
    Badge,
    BadgeAward,
    LearnerProfile,
    XPLedgerEntry,
    XPSource,
    calculate_level,
)
from progression.mastery.models import MasteryState
from progression.quizzes.models import LessonProgress, QuizAttempt

# Module logger
logger = app_logger.getChild("gamification.repository")

HIGH_SCORE_PERCENTAGE = 90


class GamificationRepository:
    """Row access for profiles, the XP ledger and badges."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Profiles

    async def ensure_profile(self, learner_id: str) -> None:
        """Create the learner's profile row if it does not exist."""
        now = utcnow()
        stmt = dialect_insert(self.session, LearnerProfile).values(
            learner_id=learner_id,
            xp=0,
            level=1,
            current_streak=0,
            best_streak=0,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=['learner_id'])
        await self.session.execute(stmt)

    async def get_profile(self, learner_id: str, for_update: bool = False) -> Optional[LearnerProfile]:
        stmt = select(LearnerProfile).where(
            LearnerProfile.learner_id == learner_id
        ).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def increment_xp(self, learner_id: str, amount: int) -> int:
        """
        Atomically add XP and recompute the level.

        Args:
            learner_id: Learner identifier
            amount: XP to add

        Returns:
            The new XP total
        """
        table = LearnerProfile.__table__
        result = await self.session.execute(
            update(table)
            .where(table.c.learner_id == learner_id)
            .values(xp=table.c.xp + amount, updated_at=utcnow())
            .returning(table.c.xp)
        )
        new_total = result.scalar_one()
        await self.session.execute(
            update(table)
            .where(table.c.learner_id == learner_id)
            .values(level=calculate_level(new_total))
        )
        return new_total

    # XP ledger

    async def insert_ledger_entry(
        self,
        learner_id: str,
        amount: int,
        reason: str,
        idempotency_key: str,
        source: Optional[XPSource] = None
    ) -> bool:
        """
        Record an XP award unless its key was already used.

        Returns:
            True if the entry was inserted, False on a duplicate key
        """
        stmt = dialect_insert(self.session, XPLedgerEntry).values(
            learner_id=learner_id,
            amount=amount,
            reason=reason,
            source=source.value if source else None,
            idempotency_key=idempotency_key,
            created_at=utcnow(),
        ).on_conflict_do_nothing(index_elements=['idempotency_key'])
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    # Badges

    async def seed_badges(self, badges: Iterable[BadgeDefinition]) -> int:
        """
        Insert catalog badges that are not present yet.

        Returns:
            Number of badges inserted
        """
        inserted = 0
        for badge in badges:
            stmt = dialect_insert(self.session, Badge).values(
                **badge.to_row_values()
            ).on_conflict_do_nothing(index_elements=['code'])
            result = await self.session.execute(stmt)
            inserted += result.rowcount or 0
        return inserted

    async def badge_catalog(self) -> List[BadgeDefinition]:
        result = await self.session.execute(select(Badge).order_by(Badge.code))
        return [BadgeDefinition.from_row(row) for row in result.scalars()]

    async def owned_badge_codes(self, learner_id: str) -> Set[str]:
        result = await self.session.execute(
            select(BadgeAward.badge_code).where(BadgeAward.learner_id == learner_id)
        )
        return set(result.scalars())

    async def insert_badge_award(
        self,
        learner_id: str,
        badge_code: str,
        at: datetime.datetime
    ) -> bool:
        """
        Award a badge unless the learner already holds it.

        Returns:
            True if this call awarded the badge
        """
        stmt = dialect_insert(self.session, BadgeAward).values(
            learner_id=learner_id,
            badge_code=badge_code,
            awarded_at=at,
        ).on_conflict_do_nothing(index_elements=['learner_id', 'badge_code'])
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def badge_awards(self, learner_id: str) -> List[BadgeAward]:
        result = await self.session.execute(
            select(BadgeAward)
            .where(BadgeAward.learner_id == learner_id)
            .order_by(BadgeAward.awarded_at, BadgeAward.id)
        )
        return list(result.scalars())

    # Stats

    async def learner_stats(self, learner_id: str) -> LearnerStats:
        """
        Snapshot the aggregates badge criteria are evaluated against.

        Args:
            learner_id: Learner identifier

        Returns:
            LearnerStats read inside the caller's transaction
        """
        profile = await self.get_profile(learner_id)

        attempts = await self.session.execute(
            select(
                func.count(QuizAttempt.id),
                func.count(QuizAttempt.id).filter(QuizAttempt.is_perfect.is_(True)),
                func.count(QuizAttempt.id).filter(QuizAttempt.percentage >= HIGH_SCORE_PERCENTAGE),
            ).where(QuizAttempt.learner_id == learner_id)
        )
        quizzes_completed, perfect_quizzes, high_score_quizzes = attempts.one()

        lessons_completed = await self.session.scalar(
            select(func.count(LessonProgress.id)).where(
                LessonProgress.learner_id == learner_id,
                LessonProgress.is_completed.is_(True),
            )
        )

        mastery = await self.session.execute(
            select(
                func.max(MasteryState.mastery_level),
                func.count(func.distinct(MasteryState.subject)),
            ).where(
                MasteryState.learner_id == learner_id,
                MasteryState.total_sessions > 0,
            )
        )
        max_mastery, subjects_studied = mastery.one()

        return LearnerStats(
            xp=profile.xp if profile else 0,
            current_streak=profile.current_streak if profile else 0,
            best_streak=profile.best_streak if profile else 0,
            max_mastery=max_mastery or 0,
            quizzes_completed=quizzes_completed or 0,
            perfect_quizzes=perfect_quizzes or 0,
            high_score_quizzes=high_score_quizzes or 0,
            lessons_completed=lessons_completed or 0,
            subjects_studied=subjects_studied or 0,
        )
