"""
Real-time Difficulty Adaptation

This module decides the target difficulty of the next question in a live
session from the session's running counters. It is pure: no persistence,
no I/O, and identical inputs always produce identical outputs.

Two regimes are used:
- Early questions (fewer than 3 answered) react to streaks alone.
- Later questions also weigh the overall accuracy of the session.
"""

import enum
from typing import Any, Dict, Iterable, Tuple

from progression.common.logger import app_logger

# Module logger
logger = app_logger.getChild("adaptive.difficulty")

# Number of answers before accuracy is taken into account
EARLY_PHASE_QUESTIONS = 3

# Streak length that triggers a step
STREAK_THRESHOLD = 2

# Accuracy bounds for the later phase
ESCALATE_MIN_RATE = 0.7
DEESCALATE_MAX_RATE = 0.4
HARD_GUARD_MAX_RATE = 0.5


class Difficulty(enum.Enum):
    """Ordered difficulty tiers for questions."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    def to_numeric(self) -> int:
        """Convert the tier to its rank (0 = easy, 2 = hard)."""
        return _ORDER.index(self)

    def step_up(self) -> 'Difficulty':
        """Return the next harder tier, saturating at hard."""
        return _ORDER[min(self.to_numeric() + 1, len(_ORDER) - 1)]

    def step_down(self) -> 'Difficulty':
        """Return the next easier tier, saturating at easy."""
        return _ORDER[max(self.to_numeric() - 1, 0)]


_ORDER: Tuple[Difficulty, ...] = (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)


class DifficultyAdjustment:
    """
    Outcome of one adaptation step.

    Records the previous and new tiers along with a human-readable reason
    suitable for display and audit.
    """

    def __init__(
        self,
        previous_level: Difficulty,
        new_level: Difficulty,
        reason: str
    ):
        self.previous_level = previous_level
        self.new_level = new_level
        self.reason = reason

    @property
    def changed(self) -> bool:
        """Whether the tier moved."""
        return self.previous_level != self.new_level

    @property
    def magnitude(self) -> int:
        """Signed size of the move: +1 up, -1 down, 0 held."""
        return self.new_level.to_numeric() - self.previous_level.to_numeric()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape used in next-question responses."""
        return {
            "previousDifficulty": self.previous_level.value,
            "currentDifficulty": self.new_level.value,
            "difficultyChanged": self.changed,
            "reason": self.reason
        }

    def __repr__(self) -> str:
        return (
            f"DifficultyAdjustment({self.previous_level.value} -> "
            f"{self.new_level.value}, reason={self.reason!r})"
        )


def next_difficulty(
    current: Difficulty,
    consecutive_correct: int,
    consecutive_wrong: int,
    total_answered: int,
    correct_count: int
) -> Difficulty:
    """
    Compute the difficulty of the next question.

    Args:
        current: Difficulty of the question just answered
        consecutive_correct: Length of the trailing run of correct answers
        consecutive_wrong: Length of the trailing run of wrong answers
        total_answered: Questions answered so far in the session
        correct_count: Correct answers so far in the session

    Returns:
        The next difficulty, never more than one step away from ``current``
    """
    if total_answered < EARLY_PHASE_QUESTIONS:
        if consecutive_correct >= STREAK_THRESHOLD and current is not Difficulty.HARD:
            return current.step_up()
        if consecutive_wrong >= STREAK_THRESHOLD and current is not Difficulty.EASY:
            return current.step_down()
        return current

    rate = correct_count / total_answered

    if (
        consecutive_correct >= STREAK_THRESHOLD
        and rate >= ESCALATE_MIN_RATE
        and current is not Difficulty.HARD
    ):
        return current.step_up()

    if (
        (consecutive_wrong >= STREAK_THRESHOLD or rate < DEESCALATE_MAX_RATE)
        and current is not Difficulty.EASY
    ):
        return current.step_down()

    # A single miss at hard is enough when the session is going badly overall
    if consecutive_wrong >= 1 and rate < HARD_GUARD_MAX_RATE and current is Difficulty.HARD:
        return Difficulty.MEDIUM

    return current


def describe_change(
    previous: Difficulty,
    new: Difficulty,
    consecutive_correct: int,
    consecutive_wrong: int
) -> str:
    """
    Build the rationale string for an adaptation step.

    Args:
        previous: Tier before the step
        new: Tier after the step
        consecutive_correct: Trailing correct run that drove the step
        consecutive_wrong: Trailing wrong run that drove the step

    Returns:
        A sentence distinguishing leveled up, leveled down and held
    """
    if new.to_numeric() > previous.to_numeric():
        if consecutive_correct >= STREAK_THRESHOLD:
            return f"{consecutive_correct} correct answers in a row! Leveled up to {new.value}."
        return f"Great overall performance. Leveled up to {new.value}."

    if new.to_numeric() < previous.to_numeric():
        if consecutive_wrong >= STREAK_THRESHOLD:
            return f"{consecutive_wrong} misses in a row. Leveled down to {new.value} to review the basics."
        return f"Overall accuracy is low. Leveled down to {new.value}."

    if consecutive_correct > 0:
        return f"Held at {new.value} after {consecutive_correct} correct in a row."
    if consecutive_wrong > 0:
        return f"Held at {new.value} after {consecutive_wrong} miss(es) in a row."
    return f"Held at {new.value}."


def adapt(
    current: Difficulty,
    consecutive_correct: int,
    consecutive_wrong: int,
    total_answered: int,
    correct_count: int
) -> DifficultyAdjustment:
    """
    Run one adaptation step and explain it.

    Args:
        current: Difficulty of the question just answered
        consecutive_correct: Length of the trailing run of correct answers
        consecutive_wrong: Length of the trailing run of wrong answers
        total_answered: Questions answered so far in the session
        correct_count: Correct answers so far in the session

    Returns:
        DifficultyAdjustment with previous/new tiers and the reason
    """
    new = next_difficulty(
        current, consecutive_correct, consecutive_wrong, total_answered, correct_count
    )
    reason = describe_change(current, new, consecutive_correct, consecutive_wrong)

    if new is not current:
        logger.debug(f"Difficulty {current.value} -> {new.value}: {reason}")

    return DifficultyAdjustment(current, new, reason)


def replay(start: Difficulty, outcomes: Iterable[bool]) -> Tuple[Difficulty, int, int]:
    """
    Replay the adapter over a sequence of graded answers.

    Used at commit time to derive the final difficulty from server-side
    grading instead of trusting client counters.

    Args:
        start: Difficulty the session started at
        outcomes: Correctness of each answer, in order

    Returns:
        Tuple of (final difficulty, trailing correct run, trailing wrong run)
    """
    current = start
    total = correct = run_correct = run_wrong = 0

    for is_correct in outcomes:
        total += 1
        if is_correct:
            correct += 1
            run_correct += 1
            run_wrong = 0
        else:
            run_wrong += 1
            run_correct = 0
        current = next_difficulty(current, run_correct, run_wrong, total, correct)

    return current, run_correct, run_wrong
