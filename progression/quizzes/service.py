"""
Quiz Scoring Engine

This module grades quiz submissions and applies their effects in a single
unit of work:
1. The immutable attempt record
2. Lesson progress
3. Mastery and weak areas
4. XP, streak and badges

Notifications and alerts are published only after the unit of work commits.
"""

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from progression.adaptive.difficulty import replay
from progression.adaptive.models import SessionStatus
from progression.catalog.repository import CatalogRepository
from progression.common.db import SessionFactory, read_session, unit_of_work
from progression.common.error_handling import ValidationError
from progression.common.logger import app_logger, log_execution_time, with_context
from progression.common.utils import to_naive_utc, utcnow
from progression.gamification.badges import BadgeDefinition
from progression.gamification.models import XPSource
from progression.gamification.service import GamificationLedger
from progression.mastery.service import MasteryTracker, SessionAnswer, WeakAreaTracker
from progression.notifications.dispatcher import NotificationDispatcher
from progression.quizzes.repository import QuizRepository
from progression.quizzes.scoring import GradedQuiz, QuestionSpec, feedback_for, grade

# Set up module logger
logger = app_logger.getChild("quizzes.service")

# Namespace for attempt ids derived from (learner, quiz, startedAt)
ATTEMPT_NAMESPACE = uuid.UUID("6f1c1d52-3b7e-5a41-9a8e-2c4f0d7b9e13")

TIER_LABELS = {
    XPSource.QUIZ_PERFECT: "Perfect score",
    XPSource.QUIZ_PASSED: "Quiz passed",
    XPSource.QUIZ_COMPLETED: "Quiz completed",
}


@dataclass
class QuizSubmission:
    """A learner's answers to one quiz."""
    quiz_id: str
    lesson_id: str
    learner_id: str
    answers: Dict[str, str] = field(default_factory=dict)
    time_spent: int = 0
    started_at: Optional[datetime.datetime] = None
    attempt_id: Optional[str] = None

    def validate(self) -> None:
        """
        Reject malformed submissions.

        Raises:
            ValidationError: If the answer map or time spent is malformed
        """
        if not isinstance(self.answers, dict):
            raise ValidationError("answers must map question ids to option ids")
        if self.time_spent is None or self.time_spent < 0:
            raise ValidationError("timeSpent must not be negative", details={"timeSpent": self.time_spent})
        for question_id, option_id in self.answers.items():
            if not isinstance(option_id, str) or not option_id:
                raise ValidationError(
                    "Each answer must be an option id",
                    details={"questionId": question_id}
                )

    def resolve_attempt_id(self) -> str:
        """
        Identify the attempt.

        An explicit attempt id wins. Otherwise the id is derived from the
        learner, quiz and start time, so a retried submission of the same
        attempt maps to the same id. Without a start time a fresh id is used.
        """
        if self.attempt_id:
            return self.attempt_id
        if self.started_at is not None:
            started = to_naive_utc(self.started_at).isoformat()
            return str(uuid.uuid5(ATTEMPT_NAMESPACE, f"{self.learner_id}:{self.quiz_id}:{started}"))
        return str(uuid.uuid4())


@dataclass
class AttemptResult:
    """Response of a submission."""
    attempt_id: str
    result: Dict[str, Any]
    replayed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "attemptId": self.attempt_id,
            "replayed": self.replayed,
            "result": self.result,
        }


@dataclass
class _QuizContext:
    """Catalog facts resolved before grading."""
    quiz_title: str
    lesson_title: str
    subject: str
    grade_level: str
    passing_score: int
    questions: List[QuestionSpec]
    status: SessionStatus
    stored_result: Optional[Dict[str, Any]] = None


class QuizScoringEngine:
    """
    Grades submissions and commits their effects atomically.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        mastery: MasteryTracker,
        weak_areas: WeakAreaTracker,
        ledger: GamificationLedger,
        dispatcher: Optional[NotificationDispatcher] = None,
        low_score_threshold: int = 50,
        require_enrollment: bool = True
    ):
        """
        Initialize the engine.

        Args:
            session_factory: Factory for database sessions
            mastery: Mastery tracker
            weak_areas: Weak-area tracker
            ledger: Gamification ledger
            dispatcher: Publisher for notifications and alerts
            low_score_threshold: Percentage below which an alert is raised
            require_enrollment: Whether learners must be enrolled in the course
        """
        self.session_factory = session_factory
        self.mastery = mastery
        self.weak_areas = weak_areas
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.low_score_threshold = low_score_threshold
        self.require_enrollment = require_enrollment

    @log_execution_time(logger)
    async def submit(self, submission: QuizSubmission) -> AttemptResult:
        """
        Grade a submission and apply its effects.

        Every request error is raised before any write. A submission whose
        attempt id is already recorded returns the stored result and applies
        nothing.

        Args:
            submission: The learner's answers

        Returns:
            AttemptResult with the graded attempt

        Raises:
            ValidationError: If the submission is malformed
            NotFoundError: If the learner or quiz does not exist
            AccessDeniedError: If the learner may not access the lesson
            DatabaseError: If the unit of work failed and was rolled back
        """
        submission.validate()
        attempt_id = submission.resolve_attempt_id()
        log = with_context(logger, learner_id=submission.learner_id, quiz_id=submission.quiz_id)

        context = await self._load_context(submission, attempt_id)
        if context.status is SessionStatus.COMPLETED:
            log.info(f"Attempt {attempt_id} already recorded; returning stored result")
            return AttemptResult(attempt_id, context.stored_result, replayed=True)
        context.status = context.status.transition_to(SessionStatus.COMPLETED)

        graded = grade(context.questions, submission.answers, context.passing_score)
        completed_at = utcnow()

        async with unit_of_work(self.session_factory) as session:
            committed = await self._commit(session, submission, attempt_id, context, graded, completed_at)

        if committed is None:
            # A concurrent request recorded the same attempt first
            log.info(f"Attempt {attempt_id} was recorded concurrently; returning stored result")
            async with read_session(self.session_factory) as session:
                attempt = await QuizRepository(session).get_attempt(attempt_id)
            return AttemptResult(attempt_id, attempt.to_result(), replayed=True)

        result, badges = committed
        log.info(
            f"Attempt {attempt_id} scored {graded.percentage}% "
            f"({graded.correct_count}/{graded.total_questions}), {len(badges)} new badge(s)"
        )
        self._publish(submission, context, graded, result, badges)
        return AttemptResult(attempt_id, result)

    async def _load_context(self, submission: QuizSubmission, attempt_id: str) -> _QuizContext:
        """Resolve and check everything the submission refers to."""
        async with read_session(self.session_factory) as session:
            catalog = CatalogRepository(session)
            await catalog.require_learner(submission.learner_id)
            quiz = await catalog.require_quiz(submission.quiz_id)
            if quiz.lesson_id != submission.lesson_id:
                raise ValidationError(
                    "Quiz does not belong to the given lesson",
                    details={"quizId": quiz.id, "lessonId": submission.lesson_id}
                )

            lesson = quiz.lesson
            await catalog.require_access(submission.learner_id, lesson, enforce=self.require_enrollment)

            question_ids = {question.id for question in quiz.questions}
            unknown = sorted(set(submission.answers) - question_ids)
            if unknown:
                raise ValidationError(
                    "Answers refer to questions outside this quiz",
                    details={"questionIds": unknown}
                )

            context = _QuizContext(
                quiz_title=quiz.title,
                lesson_title=lesson.title,
                subject=lesson.course.subject,
                grade_level=lesson.course.grade_level,
                passing_score=quiz.passing_score,
                questions=[QuestionSpec.from_model(question) for question in quiz.questions],
                status=SessionStatus.NOT_STARTED,
            )

            stored = await QuizRepository(session).get_attempt(attempt_id)
            if stored is not None:
                if stored.learner_id != submission.learner_id or stored.quiz_id != submission.quiz_id:
                    raise ValidationError(
                        "Attempt id is already used by another submission",
                        details={"attemptId": attempt_id}
                    )
                context.status = SessionStatus.COMPLETED
                context.stored_result = stored.to_result()

            return context

    async def _commit(
        self,
        session,
        submission: QuizSubmission,
        attempt_id: str,
        context: _QuizContext,
        graded: GradedQuiz,
        completed_at: datetime.datetime
    ) -> Optional[Tuple[Dict[str, Any], List[BadgeDefinition]]]:
        """
        Apply every effect of a graded attempt inside the caller's transaction.

        Returns:
            The stored result and the newly awarded badges, or None when the
            attempt id was recorded by another transaction
        """
        learner_id = submission.learner_id
        quizzes = QuizRepository(session)

        # The attempt row goes first and guards every other effect
        inserted = await quizzes.insert_attempt({
            "id": attempt_id,
            "learner_id": learner_id,
            "quiz_id": submission.quiz_id,
            "lesson_id": submission.lesson_id,
            "score": graded.score,
            "total_points": graded.total_points,
            "percentage": graded.percentage,
            "passed": graded.passed,
            "is_perfect": graded.is_perfect,
            "correct_count": graded.correct_count,
            "total_questions": graded.total_questions,
            "answers": graded.answers_payload(),
            "xp_earned": graded.xp_reward,
            "new_badges": [],
            "time_spent": submission.time_spent,
            "started_at": to_naive_utc(submission.started_at) if submission.started_at else None,
            "completed_at": completed_at,
            "feedback": feedback_for(graded),
        })
        if not inserted:
            return None

        await quizzes.upsert_progress(
            learner_id,
            submission.lesson_id,
            graded.passed,
            graded.percentage,
            submission.time_spent,
            completed_at,
        )

        # Mastery: the final difficulty is replayed from server-side grading
        state = await self.mastery.get_or_create(
            session, learner_id, context.subject, context.grade_level, for_update=True
        )
        outcomes = [answer.is_correct for answer in graded.answers]
        final_difficulty, run_correct, run_wrong = replay(state.difficulty, outcomes)
        await self.mastery.commit_session(
            session,
            learner_id,
            context.subject,
            context.grade_level,
            [SessionAnswer(answer.difficulty, answer.is_correct, answer.topic) for answer in graded.answers],
            final_difficulty,
            run_correct,
            run_wrong,
            at=completed_at,
        )

        for answer in graded.answers:
            await self.weak_areas.record_outcome(
                session, learner_id, context.subject, answer.topic, answer.is_correct, at=completed_at
            )

        # Ledger
        tier = graded.xp_source
        await self.ledger.award_xp(
            session,
            learner_id,
            graded.xp_reward,
            f"{TIER_LABELS[tier]}: {context.quiz_title}",
            f"quiz-attempt:{attempt_id}",
            source=tier,
        )

        activity_date = completed_at.date()
        streak = await self.ledger.update_streak(session, learner_id, activity_date)
        if streak.streak_updated and streak.current_streak > 1:
            await self.ledger.award_xp(
                session,
                learner_id,
                XPSource.DAILY_STREAK.xp_reward,
                f"Daily streak: {streak.current_streak} days",
                f"streak:{learner_id}:{activity_date.isoformat()}",
                source=XPSource.DAILY_STREAK,
            )

        badges = await self.ledger.check_and_award_badges(session, learner_id, at=completed_at)
        if badges:
            await quizzes.set_attempt_badges(attempt_id, [badge.to_dict() for badge in badges])

        attempt = await quizzes.get_attempt(attempt_id)
        return attempt.to_result(), badges

    def _publish(
        self,
        submission: QuizSubmission,
        context: _QuizContext,
        graded: GradedQuiz,
        result: Dict[str, Any],
        badges: List[BadgeDefinition]
    ) -> None:
        """Fire-and-forget notifications for a committed attempt."""
        if self.dispatcher is None:
            return

        self.dispatcher.quiz_completed(
            submission.learner_id,
            submission.quiz_id,
            context.lesson_title,
            graded.percentage,
            graded.passed,
            result["xpEarned"],
        )
        for badge in badges:
            self.dispatcher.badge_earned(submission.learner_id, badge.to_dict())
        if graded.percentage < self.low_score_threshold:
            self.dispatcher.low_score_alert(submission.learner_id, context.lesson_title, graded.percentage)
