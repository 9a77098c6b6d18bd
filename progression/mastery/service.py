"""
Mastery and Weak-Area Tracking

This module merges finished sessions into a learner's long-run mastery
profile and keeps the per-topic error counters used to target weak areas.

Both trackers operate on a caller-supplied session so that their writes
join the caller's unit of work.
"""

import copy
import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from progression.adaptive.difficulty import Difficulty
from progression.common.logger import app_logger
from progression.common.utils import clamp, round_half_up, utcnow
from progression.mastery.models import MasteryState, WeakArea, empty_breakdown
from progression.mastery.repository import MasteryRepository, WeakAreaRepository

# Module logger
logger = app_logger.getChild("mastery.service")

MIN_MASTERY = 0
MAX_MASTERY = 100


@dataclass(frozen=True)
class SessionAnswer:
    """One graded answer of a finished session."""
    difficulty: Difficulty
    correct: bool
    topic: Optional[str] = None


def merge_mastery(old_level: int, correct: int, total: int, history_weight: float = 0.7) -> int:
    """
    Blend a session's accuracy into the long-run mastery level.

    ``new = round(w * old + (1 - w) * accuracy * 100)``, clamped to
    [0, 100]. A session without answers leaves the level unchanged.

    Args:
        old_level: Mastery level before the session
        correct: Correct answers in the session
        total: Answers in the session
        history_weight: Weight ``w`` given to the existing level

    Returns:
        The merged mastery level
    """
    if total <= 0:
        return old_level

    weight = Decimal(str(history_weight))
    blended = weight * old_level + (1 - weight) * Decimal(correct * 100) / Decimal(total)
    return clamp(round_half_up(blended), MIN_MASTERY, MAX_MASTERY)


def longest_run(outcomes: Iterable[bool]) -> int:
    """Length of the longest run of correct answers."""
    best = current = 0
    for is_correct in outcomes:
        current = current + 1 if is_correct else 0
        best = max(best, current)
    return best


class MasteryTracker:
    """
    Persistent per (learner, subject, grade) mastery profile.

    The profile is created lazily with a medium starting difficulty and a
    mastery level of 50, and only ever changes when a session commits.
    """

    def __init__(self, history_weight: float = 0.7, history_size: int = 50):
        """
        Initialize the tracker.

        Args:
            history_weight: Weight of the existing level in the merge
            history_size: Number of answers kept in ``recent_history``
        """
        self.history_weight = history_weight
        self.history_size = history_size

    async def get(
        self,
        session: AsyncSession,
        learner_id: str,
        subject: str,
        grade_level: str
    ) -> Optional[MasteryState]:
        """Read a mastery state without creating it."""
        return await MasteryRepository(session).get(learner_id, subject, grade_level)

    async def list_for_learner(self, session: AsyncSession, learner_id: str) -> List[MasteryState]:
        """Every mastery state of a learner, across subjects and grades."""
        return await MasteryRepository(session).list_for_learner(learner_id)

    async def get_or_create(
        self,
        session: AsyncSession,
        learner_id: str,
        subject: str,
        grade_level: str,
        for_update: bool = False
    ) -> MasteryState:
        """Read a mastery state, creating it with defaults when missing."""
        return await MasteryRepository(session).get_or_create(
            learner_id, subject, grade_level, for_update=for_update
        )

    async def commit_session(
        self,
        session: AsyncSession,
        learner_id: str,
        subject: str,
        grade_level: str,
        answers: Sequence[SessionAnswer],
        final_difficulty: Difficulty,
        consecutive_correct: int,
        consecutive_wrong: int,
        at: Optional[datetime.datetime] = None
    ) -> MasteryState:
        """
        Merge a finished session into the learner's mastery.

        The row is locked for the rest of the caller's transaction, so
        concurrent commits for the same learner serialize.

        Args:
            session: Session of the caller's unit of work
            learner_id: Learner identifier
            subject: Subject code
            grade_level: Grade level code
            answers: Graded answers of the session, in order
            final_difficulty: Difficulty to seed the next session with
            consecutive_correct: Trailing correct run at the end of the session
            consecutive_wrong: Trailing wrong run at the end of the session
            at: Commit time (defaults to now)

        Returns:
            The updated state
        """
        at = at or utcnow()
        state = await MasteryRepository(session).get_or_create(
            learner_id, subject, grade_level, for_update=True
        )
        state.total_sessions = (state.total_sessions or 0) + 1

        if not answers:
            logger.info(f"Empty session committed for learner {learner_id} ({subject}/{grade_level})")
            await session.flush()
            return state

        correct = sum(1 for answer in answers if answer.correct)
        total = len(answers)
        previous_level = state.mastery_level

        state.mastery_level = merge_mastery(previous_level, correct, total, self.history_weight)
        state.current_difficulty = final_difficulty.value
        state.total_questions_answered += total
        state.total_correct += correct
        state.total_wrong += total - correct
        state.consecutive_correct = consecutive_correct
        state.consecutive_wrong = consecutive_wrong
        state.best_streak = max(
            state.best_streak,
            longest_run(answer.correct for answer in answers),
            consecutive_correct,
        )

        # JSON columns are reassigned so the change is detected
        breakdown = copy.deepcopy(state.difficulty_breakdown or empty_breakdown())
        for answer in answers:
            bucket = breakdown.setdefault(answer.difficulty.value, {"total": 0, "correct": 0})
            bucket["total"] += 1
            if answer.correct:
                bucket["correct"] += 1
        state.difficulty_breakdown = breakdown

        stamp = at.isoformat()
        history = list(state.recent_history or [])
        history.extend(
            {"difficulty": answer.difficulty.value, "correct": answer.correct, "timestamp": stamp}
            for answer in answers
        )
        state.recent_history = history[-self.history_size:]
        state.last_session_at = at

        await session.flush()
        logger.info(
            f"Mastery for learner {learner_id} ({subject}/{grade_level}): "
            f"{previous_level} -> {state.mastery_level}, next difficulty {state.current_difficulty}"
        )
        return state


class WeakAreaTracker:
    """
    Per (learner, subject, topic) error counters.

    Wrong answers increment the counter and re-open the area; a run of
    correct answers on an open area resolves it.
    """

    def __init__(self, resolve_after: int = 3):
        self.resolve_after = resolve_after

    async def record_outcome(
        self,
        session: AsyncSession,
        learner_id: str,
        subject: str,
        topic: Optional[str],
        correct: bool,
        at: Optional[datetime.datetime] = None
    ) -> None:
        """
        Record one answered question tagged with a topic.

        Args:
            session: Session of the caller's unit of work
            learner_id: Learner identifier
            subject: Subject code
            topic: Topic tag; untagged questions are ignored
            correct: Whether the answer was correct
            at: Time of the answer (defaults to now)
        """
        if not topic:
            return

        at = at or utcnow()
        repository = WeakAreaRepository(session)
        if correct:
            if await repository.record_success(learner_id, subject, topic, self.resolve_after, at):
                logger.info(f"Weak area resolved for learner {learner_id}: {subject}/{topic}")
        else:
            await repository.record_error(learner_id, subject, topic, at)

    async def top_areas(
        self,
        session: AsyncSession,
        learner_id: str,
        subject: Optional[str] = None,
        limit: int = 3
    ) -> List[WeakArea]:
        """
        Unresolved weak areas, highest error count first.

        Ties break by most recent error.
        """
        if limit <= 0:
            return []
        return await WeakAreaRepository(session).top(learner_id, subject, limit)
