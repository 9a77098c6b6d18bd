"""
Adaptive Session Models

This module defines the caller-held session tally and the session state
machine. Neither is stored server-side between requests.
"""

import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from progression.adaptive.difficulty import Difficulty
from progression.common.error_handling import InvalidTransitionError, ValidationError
from progression.common.serialization import SerializableMixin


class SessionStatus(enum.Enum):
    """Status of a quiz or practice session."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    def can_transition_to(self, target: 'SessionStatus') -> bool:
        """Check whether moving to ``target`` is allowed."""
        return target in _TRANSITIONS[self]

    def transition_to(self, target: 'SessionStatus') -> 'SessionStatus':
        """
        Move to a new state.

        Args:
            target: Desired state

        Returns:
            The new state

        Raises:
            InvalidTransitionError: If the move is not allowed
        """
        if not self.can_transition_to(target):
            raise InvalidTransitionError(self.value, target.value)
        return target


# Fetching another question keeps a session in progress; a submitted
# session is terminal. Static quizzes may be submitted without a fetch.
_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.NOT_STARTED: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED}),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED}),
    SessionStatus.COMPLETED: frozenset(),
}


@dataclass
class SessionPerformance(SerializableMixin):
    """
    Running tally of a live session, resubmitted by the caller on every
    next-question request.

    The values are untrusted telemetry: they steer the next difficulty and
    are never written into mastery or the ledger.
    """

    __serializable_fields__ = [
        ("total_answered", "totalAnswered"),
        ("correct_count", "correctCount"),
        ("consecutive_correct", "consecutiveCorrect"),
        ("consecutive_wrong", "consecutiveWrong"),
        ("answered_question_ids", "answeredQuestionIds"),
        ("difficulty_history", "difficultyHistory"),
    ]

    total_answered: int = 0
    correct_count: int = 0
    consecutive_correct: int = 0
    consecutive_wrong: int = 0
    answered_question_ids: List[str] = field(default_factory=list)
    difficulty_history: List[Difficulty] = field(default_factory=list)

    def validate(self) -> None:
        """
        Check the tally for internal consistency.

        Raises:
            ValidationError: If the counters contradict each other
        """
        counters = {
            "totalAnswered": self.total_answered,
            "correctCount": self.correct_count,
            "consecutiveCorrect": self.consecutive_correct,
            "consecutiveWrong": self.consecutive_wrong,
        }
        negative = [name for name, value in counters.items() if value < 0]
        if negative:
            raise ValidationError("Session counters must be non-negative", details={"fields": negative})

        if self.correct_count > self.total_answered:
            raise ValidationError(
                "correctCount cannot exceed totalAnswered",
                details={"correctCount": self.correct_count, "totalAnswered": self.total_answered}
            )
        if self.consecutive_correct > self.correct_count:
            raise ValidationError("consecutiveCorrect cannot exceed correctCount")
        if self.consecutive_wrong > self.total_answered - self.correct_count:
            raise ValidationError("consecutiveWrong cannot exceed the number of wrong answers")
        if self.consecutive_correct and self.consecutive_wrong:
            raise ValidationError("consecutiveCorrect and consecutiveWrong cannot both be non-zero")

    @property
    def status(self) -> SessionStatus:
        """State implied by the tally alone."""
        return SessionStatus.IN_PROGRESS if self.total_answered else SessionStatus.NOT_STARTED

    @property
    def next_question_number(self) -> int:
        """1-based position of the question about to be fetched."""
        return self.total_answered + 1

    def record(self, question_id: str, difficulty: Difficulty, correct: bool) -> None:
        """
        Add one answered question to the tally.

        Args:
            question_id: Identifier of the answered question
            difficulty: Difficulty the question was served at
            correct: Whether the answer was correct
        """
        self.total_answered += 1
        if correct:
            self.correct_count += 1
            self.consecutive_correct += 1
            self.consecutive_wrong = 0
        else:
            self.consecutive_wrong += 1
            self.consecutive_correct = 0
        if question_id not in self.answered_question_ids:
            self.answered_question_ids.append(question_id)
        self.difficulty_history.append(difficulty)
