"""
Quiz Grading

Pure grading of a submitted answer map against a quiz definition, and the
XP tier an outcome earns. No persistence happens here.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from progression.adaptive.difficulty import Difficulty
from progression.common.serialization import SerializableMixin
from progression.common.utils import percentage
from progression.gamification.models import XPSource


@dataclass
class QuestionSpec:
    """The parts of a quiz question needed to grade it."""
    id: str
    correct_option_id: Optional[str]
    points: int = 10
    difficulty: Difficulty = Difficulty.MEDIUM
    topic: Optional[str] = None

    @classmethod
    def from_model(cls, question) -> 'QuestionSpec':
        try:
            difficulty = Difficulty(question.difficulty)
        except ValueError:
            difficulty = Difficulty.MEDIUM
        return cls(
            id=question.id,
            correct_option_id=question.correct_option_id,
            points=question.points,
            difficulty=difficulty,
            topic=question.topic,
        )


@dataclass
class AnswerDetail(SerializableMixin):
    """Grading of one question."""

    __serializable_fields__ = [
        ("question_id", "questionId"),
        ("selected_option_id", "selectedOptionId"),
        ("correct_option_id", "correctOptionId"),
        ("is_correct", "isCorrect"),
        ("points_earned", "pointsEarned"),
        "points",
        "difficulty",
        "topic",
    ]

    question_id: str
    selected_option_id: Optional[str]
    correct_option_id: Optional[str]
    is_correct: bool
    points_earned: int
    points: int
    difficulty: Difficulty
    topic: Optional[str] = None


@dataclass
class GradedQuiz:
    """Outcome of grading a whole submission."""
    score: int
    total_points: int
    percentage: int
    passed: bool
    is_perfect: bool
    correct_count: int
    total_questions: int
    answers: List[AnswerDetail] = field(default_factory=list)

    @property
    def xp_source(self) -> XPSource:
        return xp_tier(self)

    @property
    def xp_reward(self) -> int:
        return self.xp_source.xp_reward

    def answers_payload(self) -> List[Dict[str, Any]]:
        return [answer.to_dict() for answer in self.answers]


def grade(
    questions: Sequence[QuestionSpec],
    answer_map: Mapping[str, str],
    passing_score: int
) -> GradedQuiz:
    """
    Grade a submission.

    Each question earns its full point value when the selected option is
    the one flagged correct, and nothing otherwise. Unanswered questions
    count as wrong.

    Args:
        questions: Questions of the quiz, in order
        answer_map: Selected option id per question id
        passing_score: Minimum percentage to pass

    Returns:
        GradedQuiz with ``percentage = round(earned / total * 100)``
        (0 for a quiz worth no points)
    """
    details: List[AnswerDetail] = []
    earned = total = correct_count = 0

    for question in questions:
        selected = answer_map.get(question.id)
        is_correct = selected is not None and selected == question.correct_option_id
        points_earned = question.points if is_correct else 0

        total += question.points
        earned += points_earned
        correct_count += 1 if is_correct else 0

        details.append(AnswerDetail(
            question_id=question.id,
            selected_option_id=selected,
            correct_option_id=question.correct_option_id,
            is_correct=is_correct,
            points_earned=points_earned,
            points=question.points,
            difficulty=question.difficulty,
            topic=question.topic,
        ))

    pct = percentage(earned, total)
    return GradedQuiz(
        score=earned,
        total_points=total,
        percentage=pct,
        passed=pct >= passing_score,
        is_perfect=pct == 100,
        correct_count=correct_count,
        total_questions=len(questions),
        answers=details,
    )


def xp_tier(result: GradedQuiz) -> XPSource:
    """
    XP tier of a graded attempt: perfect, passed, or merely completed.
    """
    if result.is_perfect:
        return XPSource.QUIZ_PERFECT
    if result.passed:
        return XPSource.QUIZ_PASSED
    return XPSource.QUIZ_COMPLETED


def feedback_for(result: GradedQuiz) -> str:
    """
    Short encouragement shown with a graded attempt, tiered by percentage.
    """
    tally = f"{result.correct_count}/{result.total_questions}"
    if result.percentage >= 90:
        return f"Excellent work! You have a strong grasp of this topic with {tally} correct answers. Keep it up!"
    if result.percentage >= 70:
        return f"Very good! You got {tally} correct answers. Review the questions you missed to go further."
    if result.percentage >= 50:
        return f"Not bad! You are making progress with {tally} correct answers. Reread the lesson and try the quiz again."
    return f"Don't give up! You got {tally} correct answers. Take the time to reread the lesson before trying again."
