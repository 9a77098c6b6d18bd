"""
Gamification Ledger

This module provides the ledger operations that keep XP, levels, streaks
and badges consistent under retries and concurrent submissions:
1. award_xp: at-most-once XP credit keyed by the triggering event
2. update_streak: daily streak bookkeeping
3. check_and_award_badges: data-driven badge evaluation

Every operation takes the caller's session so it joins the caller's unit
of work.
"""

import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from progression.common.error_handling import ValidationError
from progression.common.logger import app_logger
from progression.common.utils import utcnow
from progression.gamification.badges import BadgeDefinition, satisfied_badges
from progression.gamification.models import (
    LearnerProfile,
    LevelProgress,
    StreakUpdate,
    XPSource,
    calculate_level,
)
from progression.gamification.repository import GamificationRepository

# Set up module logger
logger = app_logger.getChild("gamification.service")


def advance_streak(
    current_streak: int,
    best_streak: int,
    last_activity_date: Optional[datetime.date],
    activity_date: datetime.date
) -> StreakUpdate:
    """
    Apply one day of activity to a streak.

    - Same day as the last activity: no change.
    - Exactly one day later: the streak grows by one.
    - First activity or a gap of two days or more: the streak restarts at 1.
    - A date before the last activity is ignored.

    Args:
        current_streak: Streak before the activity
        best_streak: Best streak before the activity
        last_activity_date: Date of the last recorded activity
        activity_date: Date of this activity

    Returns:
        StreakUpdate with the new counters
    """
    if last_activity_date is not None and activity_date <= last_activity_date:
        return StreakUpdate(False, current_streak, best_streak, last_activity_date)

    if last_activity_date is not None and (activity_date - last_activity_date).days == 1:
        new_streak = current_streak + 1
    else:
        new_streak = 1

    return StreakUpdate(True, new_streak, max(best_streak, new_streak), activity_date)


class GamificationLedger:
    """
    Per-learner XP, level, streak and badge ledger.
    """

    async def award_xp(
        self,
        session: AsyncSession,
        learner_id: str,
        amount: int,
        reason: str,
        idempotency_key: str,
        source: Optional[XPSource] = None
    ) -> int:
        """
        Credit XP at most once per idempotency key.

        A repeated key is a no-op that returns the current total.

        Args:
            session: Session of the caller's unit of work
            learner_id: Learner identifier
            amount: XP to credit
            reason: Human-readable reason stored in the ledger
            idempotency_key: Stable key derived from the triggering event
            source: Category of the award

        Returns:
            The learner's XP total after the call

        Raises:
            ValidationError: If amount is negative or the key is empty
        """
        if amount < 0:
            raise ValidationError("XP amount must not be negative", details={"amount": amount})
        if not idempotency_key:
            raise ValidationError("An idempotency key is required to award XP")

        repository = GamificationRepository(session)
        await repository.ensure_profile(learner_id)

        applied = await repository.insert_ledger_entry(
            learner_id, amount, reason, idempotency_key, source
        )
        if not applied:
            profile = await repository.get_profile(learner_id)
            logger.info(f"XP award {idempotency_key} already applied for learner {learner_id}")
            return profile.xp

        new_total = await repository.increment_xp(learner_id, amount)
        logger.info(
            f"Awarded {amount} XP to learner {learner_id} ({reason}); "
            f"total {new_total}, level {calculate_level(new_total)}"
        )
        return new_total

    async def update_streak(
        self,
        session: AsyncSession,
        learner_id: str,
        activity_date: datetime.date
    ) -> StreakUpdate:
        """
        Record a day of qualifying activity.

        The profile row is locked for the rest of the caller's transaction.

        Args:
            session: Session of the caller's unit of work
            learner_id: Learner identifier
            activity_date: Calendar date of the activity

        Returns:
            StreakUpdate; ``streak_updated`` is True only when the streak
            grew or restarted
        """
        repository = GamificationRepository(session)
        await repository.ensure_profile(learner_id)
        profile = await repository.get_profile(learner_id, for_update=True)

        outcome = advance_streak(
            profile.current_streak,
            profile.best_streak,
            profile.last_activity_date,
            activity_date,
        )
        if outcome.streak_updated:
            profile.current_streak = outcome.current_streak
            profile.best_streak = outcome.best_streak
            profile.last_activity_date = activity_date
            await session.flush()
            logger.info(f"Streak for learner {learner_id} is now {outcome.current_streak}")

        return outcome

    async def check_and_award_badges(
        self,
        session: AsyncSession,
        learner_id: str,
        at: Optional[datetime.datetime] = None
    ) -> List[BadgeDefinition]:
        """
        Award every badge whose criterion the learner now meets.

        Ownership is guarded by the (learner, badge) unique constraint, so a
        concurrent evaluation cannot award the same badge twice. Badge XP is
        credited through award_xp; evaluation repeats until a pass awards
        nothing, so XP badges unlocked by badge rewards are not missed.

        Args:
            session: Session of the caller's unit of work
            learner_id: Learner identifier
            at: Award time (defaults to now)

        Returns:
            Badges newly awarded by this call
        """
        at = at or utcnow()
        repository = GamificationRepository(session)
        catalog = await repository.badge_catalog()
        owned = await repository.owned_badge_codes(learner_id)
        awarded: List[BadgeDefinition] = []

        while True:
            stats = await repository.learner_stats(learner_id)
            candidates = satisfied_badges(catalog, stats, owned)
            if not candidates:
                break

            for badge in candidates:
                owned.add(badge.code)
                if not await repository.insert_badge_award(learner_id, badge.code, at):
                    continue
                awarded.append(badge)
                logger.info(f"Learner {learner_id} earned badge {badge.code}")
                if badge.xp_reward:
                    await self.award_xp(
                        session,
                        learner_id,
                        badge.xp_reward,
                        f"Badge earned: {badge.name}",
                        f"badge:{learner_id}:{badge.code}",
                        source=XPSource.BADGE_EARNED,
                    )

        return awarded

    async def get_profile(self, session: AsyncSession, learner_id: str) -> Dict[str, Any]:
        """
        Ledger view of a learner for display.

        Returns defaults when the learner has no ledger activity yet.
        """
        repository = GamificationRepository(session)
        profile = await repository.get_profile(learner_id)
        if profile is None:
            profile = LearnerProfile(learner_id=learner_id, xp=0, level=1, current_streak=0, best_streak=0)

        awards = await repository.badge_awards(learner_id)
        return {
            "learnerId": learner_id,
            "xp": profile.xp,
            "level": profile.level,
            "levelProgress": LevelProgress.for_xp(profile.xp).to_dict(),
            "currentStreak": profile.current_streak,
            "bestStreak": profile.best_streak,
            "lastActivityDate": profile.last_activity_date.isoformat() if profile.last_activity_date else None,
            "badges": [award.to_response() for award in awards],
        }
