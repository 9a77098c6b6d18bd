"""
Badge Criteria

Badge rules are data: each badge carries a tagged predicate that is
evaluated against a snapshot of the learner's aggregate stats. Adding a
badge means adding a catalog row, not writing a function.
"""

import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from progression.common.serialization import SerializableMixin
from progression.gamification.models import Badge, BadgeCategory


class CriterionKind(enum.Enum):
    """Kinds of badge predicates."""
    XP = "xp"
    STREAK = "streak"
    MASTERY = "mastery"
    COUNT = "count"


class StatMetric(enum.Enum):
    """Counters usable by COUNT criteria."""
    QUIZZES_COMPLETED = "quizzes_completed"
    PERFECT_QUIZZES = "perfect_quizzes"
    HIGH_SCORE_QUIZZES = "high_score_quizzes"
    LESSONS_COMPLETED = "lessons_completed"
    SUBJECTS_STUDIED = "subjects_studied"


@dataclass
class LearnerStats(SerializableMixin):
    """Aggregate stats of a learner at evaluation time."""

    __serializable_fields__ = [
        "xp", "current_streak", "best_streak", "max_mastery",
        "quizzes_completed", "perfect_quizzes", "high_score_quizzes",
        "lessons_completed", "subjects_studied",
    ]

    xp: int = 0
    current_streak: int = 0
    best_streak: int = 0
    max_mastery: int = 0
    quizzes_completed: int = 0
    perfect_quizzes: int = 0
    high_score_quizzes: int = 0
    lessons_completed: int = 0
    subjects_studied: int = 0

    def metric(self, metric: StatMetric) -> int:
        return getattr(self, metric.value)


@dataclass
class BadgeCriterion:
    """A tagged predicate over LearnerStats."""
    kind: CriterionKind
    threshold: int
    metric: Optional[StatMetric] = None

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = CriterionKind(self.kind)
        if isinstance(self.metric, str):
            self.metric = StatMetric(self.metric)
        if self.kind is CriterionKind.COUNT and self.metric is None:
            raise ValueError("count criteria need a metric")

    def is_satisfied(self, stats: LearnerStats) -> bool:
        """
        Evaluate the predicate.

        Args:
            stats: Snapshot of the learner's aggregates

        Returns:
            True when the learner meets the threshold
        """
        if self.kind is CriterionKind.XP:
            value = stats.xp
        elif self.kind is CriterionKind.STREAK:
            value = max(stats.current_streak, stats.best_streak)
        elif self.kind is CriterionKind.MASTERY:
            value = stats.max_mastery
        else:
            value = stats.metric(self.metric)
        return value >= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        data = {"kind": self.kind.value, "threshold": self.threshold}
        if self.metric is not None:
            data["metric"] = self.metric.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BadgeCriterion':
        return cls(kind=data["kind"], threshold=int(data["threshold"]), metric=data.get("metric"))


@dataclass
class BadgeDefinition(SerializableMixin):
    """A badge together with its parsed criterion."""

    __serializable_fields__ = [
        "code", "name", "description", "category", ("xp_reward", "xpReward"),
    ]

    code: str
    name: str
    criterion: BadgeCriterion
    description: str = ""
    category: BadgeCategory = BadgeCategory.ACHIEVEMENT
    xp_reward: int = 0

    @classmethod
    def from_row(cls, row: Badge) -> 'BadgeDefinition':
        return cls(
            code=row.code,
            name=row.name,
            description=row.description or "",
            category=BadgeCategory(row.category),
            xp_reward=row.xp_reward,
            criterion=BadgeCriterion.from_dict(row.criterion),
        )

    def to_row_values(self) -> Dict[str, Any]:
        """Column values for seeding the catalog."""
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "xp_reward": self.xp_reward,
            "criterion": self.criterion.to_dict(),
        }


def _count(metric: StatMetric, threshold: int) -> BadgeCriterion:
    return BadgeCriterion(CriterionKind.COUNT, threshold, metric)


DEFAULT_BADGES: List[BadgeDefinition] = [
    # Progress
    BadgeDefinition("first_lesson", "First Steps", _count(StatMetric.LESSONS_COMPLETED, 1),
                    "Complete your first lesson", BadgeCategory.PROGRESS, 50),
    BadgeDefinition("five_lessons", "On Your Way", _count(StatMetric.LESSONS_COMPLETED, 5),
                    "Complete 5 lessons", BadgeCategory.PROGRESS, 100),
    BadgeDefinition("ten_lessons", "Dedicated", _count(StatMetric.LESSONS_COMPLETED, 10),
                    "Complete 10 lessons", BadgeCategory.PROGRESS, 200),

    # Streaks
    BadgeDefinition("streak_3", "Regular", BadgeCriterion(CriterionKind.STREAK, 3),
                    "Study 3 days in a row", BadgeCategory.STREAK, 75),
    BadgeDefinition("streak_7", "Perfect Week", BadgeCriterion(CriterionKind.STREAK, 7),
                    "Study 7 days in a row", BadgeCategory.STREAK, 150),
    BadgeDefinition("streak_30", "Monthly Champion", BadgeCriterion(CriterionKind.STREAK, 30),
                    "Study 30 days in a row", BadgeCategory.STREAK, 500),

    # Quizzes
    BadgeDefinition("first_quiz", "Quiz Beginner", _count(StatMetric.QUIZZES_COMPLETED, 1),
                    "Complete your first quiz", BadgeCategory.QUIZ, 50),
    BadgeDefinition("perfect_quiz", "Flawless", _count(StatMetric.PERFECT_QUIZZES, 1),
                    "Score 100% on a quiz", BadgeCategory.QUIZ, 100),
    BadgeDefinition("quiz_master", "Quiz Master", _count(StatMetric.HIGH_SCORE_QUIZZES, 10),
                    "Score 90% or more on 10 quizzes", BadgeCategory.QUIZ, 300),

    # Achievements
    BadgeDefinition("multi_subject", "All-Rounder", _count(StatMetric.SUBJECTS_STUDIED, 3),
                    "Study 3 different subjects", BadgeCategory.ACHIEVEMENT, 150),
    BadgeDefinition("xp_1000", "Thousand Club", BadgeCriterion(CriterionKind.XP, 1000),
                    "Earn 1000 XP", BadgeCategory.ACHIEVEMENT, 100),
    BadgeDefinition("mastery_80", "Subject Expert", BadgeCriterion(CriterionKind.MASTERY, 80),
                    "Reach 80% mastery in a subject", BadgeCategory.ACHIEVEMENT, 200),
]


def satisfied_badges(
    catalog: List[BadgeDefinition],
    stats: LearnerStats,
    owned: Optional[set] = None
) -> List[BadgeDefinition]:
    """
    Badges whose criterion holds and which the learner does not own yet.

    Args:
        catalog: Badges to evaluate
        stats: Learner aggregates
        owned: Codes of badges already held

    Returns:
        Candidate badges in catalog order
    """
    owned = owned or set()
    return [
        badge for badge in catalog
        if badge.code not in owned and badge.criterion.is_satisfied(stats)
    ]
