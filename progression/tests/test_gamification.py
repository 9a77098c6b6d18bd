"""
Tests for the gamification ledger: XP, levels, streaks and badges.
"""

import asyncio

import pytest
from sqlalchemy import func, select

from progression.common.db import read_session, unit_of_work
from progression.common.error_handling import ValidationError
from progression.gamification.badges import (
    DEFAULT_BADGES,
    BadgeCriterion,
    CriterionKind,
    LearnerStats,
    StatMetric,
    satisfied_badges,
)
from progression.gamification.models import (
    BadgeAward,
    LevelProgress,
    XPLedgerEntry,
    XPSource,
    calculate_level,
)
from progression.gamification.service import advance_streak

from conftest import day


class TestLevels:
    """The XP to level table."""

    @pytest.mark.parametrize("xp,level", [
        (-100, 1), (0, 1), (99, 1), (100, 2), (299, 2), (300, 3), (1000, 5), (10499, 14), (10500, 15),
        (999999, 15),
    ])
    def test_calculate_level(self, xp, level):
        assert calculate_level(xp) == level

    def test_level_is_monotonic(self):
        levels = [calculate_level(xp) for xp in range(0, 12000, 50)]

        assert levels == sorted(levels)

    def test_level_progress(self):
        progress = LevelProgress.for_xp(150)

        assert progress.to_dict() == {
            "level": 2,
            "xpInLevel": 50,
            "xpForLevel": 200,
            "xpToNextLevel": 150,
            "progress": 25,
        }

    def test_level_progress_at_max_level(self):
        progress = LevelProgress.for_xp(12000)

        assert progress.level == 15
        assert progress.progress == 100
        assert progress.xp_to_next_level == 0

    def test_xp_reward_table(self):
        assert XPSource.QUIZ_PERFECT.xp_reward == 200
        assert XPSource.QUIZ_PASSED.xp_reward == 100
        assert XPSource.QUIZ_COMPLETED.xp_reward == 20
        assert XPSource.DAILY_STREAK.xp_reward == 25
        assert XPSource.BADGE_EARNED.xp_reward == 0


class TestAdvanceStreak:
    """Pure streak arithmetic."""

    def test_first_activity_starts_at_one(self):
        outcome = advance_streak(0, 0, None, day(0))

        assert (outcome.streak_updated, outcome.current_streak, outcome.best_streak) == (True, 1, 1)

    def test_same_day_is_a_no_op(self):
        outcome = advance_streak(4, 6, day(0), day(0))

        assert outcome.streak_updated is False
        assert outcome.current_streak == 4

    def test_next_day_increments(self):
        outcome = advance_streak(4, 4, day(0), day(1))

        assert (outcome.current_streak, outcome.best_streak) == (5, 5)

    def test_gap_resets(self):
        outcome = advance_streak(4, 6, day(0), day(2))

        assert (outcome.streak_updated, outcome.current_streak, outcome.best_streak) == (True, 1, 6)

    def test_earlier_date_is_ignored(self):
        outcome = advance_streak(3, 3, day(5), day(2))

        assert outcome.streak_updated is False
        assert outcome.last_activity_date == day(5)


class TestBadgeCriteria:
    """Tagged predicates evaluated against a stats snapshot."""

    def test_each_kind(self):
        stats = LearnerStats(xp=1200, current_streak=1, best_streak=7, max_mastery=81, quizzes_completed=2)

        assert BadgeCriterion(CriterionKind.XP, 1000).is_satisfied(stats)
        assert BadgeCriterion(CriterionKind.STREAK, 7).is_satisfied(stats)
        assert BadgeCriterion(CriterionKind.MASTERY, 80).is_satisfied(stats)
        assert BadgeCriterion(CriterionKind.COUNT, 2, StatMetric.QUIZZES_COMPLETED).is_satisfied(stats)
        assert not BadgeCriterion(CriterionKind.COUNT, 1, StatMetric.LESSONS_COMPLETED).is_satisfied(stats)

    def test_count_requires_a_metric(self):
        with pytest.raises(ValueError):
            BadgeCriterion(CriterionKind.COUNT, 1)

    def test_round_trip_through_storage_shape(self):
        criterion = BadgeCriterion.from_dict({"kind": "count", "threshold": 3, "metric": "subjects_studied"})

        assert criterion.kind is CriterionKind.COUNT
        assert criterion.metric is StatMetric.SUBJECTS_STUDIED
        assert criterion.to_dict() == {"kind": "count", "threshold": 3, "metric": "subjects_studied"}

    def test_owned_badges_are_skipped(self):
        stats = LearnerStats(quizzes_completed=1, perfect_quizzes=1)

        candidates = satisfied_badges(DEFAULT_BADGES, stats, owned={"first_quiz"})

        assert [badge.code for badge in candidates] == ["perfect_quiz"]


class TestAwardXP:
    """At-most-once XP credits."""

    @pytest.mark.asyncio
    async def test_award_updates_total_and_level(self, session_factory, ledger):
        # Act
        async with unit_of_work(session_factory) as session:
            total = await ledger.award_xp(session, "learner-1", 150, "Quiz passed", "quiz-attempt:a1")

        async with read_session(session_factory) as session:
            profile = await ledger.get_profile(session, "learner-1")

        # Assert
        assert total == 150
        assert profile["xp"] == 150
        assert profile["level"] == 2

    @pytest.mark.asyncio
    async def test_same_key_is_applied_once(self, session_factory, ledger):
        # Act
        async with unit_of_work(session_factory) as session:
            first = await ledger.award_xp(session, "learner-1", 100, "Quiz passed", "quiz-attempt:a1")
        async with unit_of_work(session_factory) as session:
            second = await ledger.award_xp(session, "learner-1", 100, "Quiz passed", "quiz-attempt:a1")

        async with read_session(session_factory) as session:
            entries = await session.scalar(select(func.count(XPLedgerEntry.id)))

        # Assert
        assert first == second == 100
        assert entries == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_accumulate(self, session_factory, ledger):
        async with unit_of_work(session_factory) as session:
            await ledger.award_xp(session, "learner-1", 100, "Quiz passed", "quiz-attempt:a1")
            total = await ledger.award_xp(session, "learner-1", 25, "Daily streak", "streak:learner-1:2026-03-02")

        assert total == 125

    @pytest.mark.asyncio
    async def test_zero_award_is_recorded(self, session_factory, ledger):
        async with unit_of_work(session_factory) as session:
            total = await ledger.award_xp(session, "learner-1", 0, "Nothing", "noop:1")

        assert total == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,key", [(-5, "k"), (10, "")])
    async def test_invalid_awards_are_rejected(self, session_factory, ledger, amount, key):
        with pytest.raises(ValidationError):
            async with unit_of_work(session_factory) as session:
                await ledger.award_xp(session, "learner-1", amount, "Bad", key)


class TestUpdateStreak:
    """Stored daily streaks."""

    @pytest.mark.asyncio
    async def test_practice_days_scenario(self, session_factory, ledger):
        # Arrange: practice on days 1, 2 and 4, twice on day 2
        outcomes = []

        # Act
        for offset in (0, 1, 1, 3):
            async with unit_of_work(session_factory) as session:
                outcomes.append(await ledger.update_streak(session, "learner-1", day(offset)))

        # Assert
        assert [(o.streak_updated, o.current_streak) for o in outcomes] == [
            (True, 1), (True, 2), (False, 2), (True, 1),
        ]
        async with read_session(session_factory) as session:
            profile = await ledger.get_profile(session, "learner-1")
        assert profile["currentStreak"] == 1
        assert profile["bestStreak"] == 2
        assert profile["lastActivityDate"] == day(3).isoformat()


class TestCheckAndAwardBadges:
    """Data-driven badge evaluation."""

    @pytest.mark.asyncio
    async def test_xp_badge_is_awarded_once_with_its_reward(self, session_factory, ledger):
        # Arrange
        async with unit_of_work(session_factory) as session:
            await ledger.award_xp(session, "learner-1", 1000, "Seed", "seed:1")

        # Act
        async with unit_of_work(session_factory) as session:
            first = await ledger.check_and_award_badges(session, "learner-1")
        async with unit_of_work(session_factory) as session:
            second = await ledger.check_and_award_badges(session, "learner-1")

        async with read_session(session_factory) as session:
            profile = await ledger.get_profile(session, "learner-1")

        # Assert
        assert [badge.code for badge in first] == ["xp_1000"]
        assert second == []
        assert profile["xp"] == 1100
        assert [badge["code"] for badge in profile["badges"]] == ["xp_1000"]

    @pytest.mark.asyncio
    async def test_badge_reward_can_unlock_an_xp_badge(self, session_factory, ledger):
        # Arrange: 930 XP and a 3-day streak
        async with unit_of_work(session_factory) as session:
            await ledger.award_xp(session, "learner-1", 930, "Seed", "seed:1")
            for offset in range(3):
                await ledger.update_streak(session, "learner-1", day(offset))

        # Act
        async with unit_of_work(session_factory) as session:
            awarded = await ledger.check_and_award_badges(session, "learner-1")

        # Assert: 930 + 75 crosses 1000 within the same evaluation
        assert {badge.code for badge in awarded} == {"streak_3", "xp_1000"}

    @pytest.mark.asyncio
    async def test_nothing_to_award(self, session_factory, ledger):
        async with unit_of_work(session_factory) as session:
            assert await ledger.check_and_award_badges(session, "learner-1") == []

    @pytest.mark.asyncio
    async def test_profile_defaults_for_unknown_learner(self, session_factory, ledger):
        async with read_session(session_factory) as session:
            profile = await ledger.get_profile(session, "nobody")

        assert profile["xp"] == 0
        assert profile["level"] == 1
        assert profile["currentStreak"] == 0
        assert profile["lastActivityDate"] is None
        assert profile["badges"] == []
        assert profile["levelProgress"]["xpToNextLevel"] == 100


class TestConcurrentBadgeChecks:
    """Two evaluations racing on a database shared by several connections."""

    @pytest.fixture
    def engine(self, file_engine):
        return file_engine

    @pytest.mark.asyncio
    async def test_each_badge_is_awarded_once(self, session_factory, ledger):
        # Arrange
        async with unit_of_work(session_factory) as session:
            await ledger.award_xp(session, "learner-1", 1000, "Seed", "seed:1")

        async def evaluate():
            async with unit_of_work(session_factory) as session:
                return await ledger.check_and_award_badges(session, "learner-1")

        # Act
        first, second = await asyncio.gather(evaluate(), evaluate())

        async with read_session(session_factory) as session:
            awards = await session.scalar(select(func.count(BadgeAward.id)))
            entries = await session.scalar(select(func.count(XPLedgerEntry.id)))
            profile = await ledger.get_profile(session, "learner-1")

        # Assert: the reward is credited once, by whichever evaluation won
        assert sorted(badge.code for badge in first + second) == ["xp_1000"]
        assert awards == 1
        assert entries == 2
        assert profile["xp"] == 1100
