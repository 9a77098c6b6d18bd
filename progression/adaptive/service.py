"""
Adaptive Session Service

Serves the next question of a live session. The server keeps no session
state: the caller resubmits its running tally on every request, the
difficulty is recomputed from it, and the question generator is asked for
one question at that difficulty.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from progression.adaptive.difficulty import Difficulty, adapt
from progression.adaptive.generator import QuestionGenerator, QuestionRequest
from progression.adaptive.models import SessionPerformance, SessionStatus
from progression.catalog.repository import CatalogRepository
from progression.common.db import SessionFactory, read_session
from progression.common.logger import app_logger, log_execution_time, with_context
from progression.mastery.service import MasteryTracker, WeakAreaTracker

# Set up module logger
logger = app_logger.getChild("adaptive.service")


@dataclass
class NextQuestionRequest:
    """A request for the next question of a session."""
    lesson_id: str
    learner_id: str
    current_difficulty: Optional[Difficulty] = None
    performance: SessionPerformance = field(default_factory=SessionPerformance)


class AdaptiveSessionService:
    """
    Orchestrates one step of the adaptive loop.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        generator: QuestionGenerator,
        mastery: MasteryTracker,
        weak_areas: WeakAreaTracker,
        weak_topic_limit: int = 3,
        require_enrollment: bool = True
    ):
        """
        Initialize the service.

        Args:
            session_factory: Factory for database sessions
            generator: External question generator
            mastery: Mastery tracker, read to seed a session's difficulty
            weak_areas: Weak-area tracker, read for topic hints
            weak_topic_limit: Number of weak topics passed to the generator
            require_enrollment: Whether learners must be enrolled in the course
        """
        self.session_factory = session_factory
        self.generator = generator
        self.mastery = mastery
        self.weak_areas = weak_areas
        self.weak_topic_limit = weak_topic_limit
        self.require_enrollment = require_enrollment

    @log_execution_time(logger)
    async def next_question(self, request: NextQuestionRequest) -> Dict[str, Any]:
        """
        Adapt the difficulty and fetch the next question.

        When the caller sends no current difficulty, the session starts at
        the difficulty stored in the learner's mastery profile for the
        lesson's subject, or medium if there is none.

        Args:
            request: Lesson, learner and the caller's session tally

        Returns:
            Dictionary with ``question``, ``adaptation`` and ``context``

        Raises:
            ValidationError: If the session tally is inconsistent
            NotFoundError: If the learner or lesson does not exist
            AccessDeniedError: If the learner may not access the lesson
            QuestionGenerationError: If the generator failed (retryable)
        """
        performance = request.performance
        performance.validate()
        status = performance.status.transition_to(SessionStatus.IN_PROGRESS)
        log = with_context(logger, learner_id=request.learner_id, lesson_id=request.lesson_id)

        async with read_session(self.session_factory) as session:
            catalog = CatalogRepository(session)
            await catalog.require_learner(request.learner_id)
            lesson = await catalog.require_lesson(request.lesson_id)
            await catalog.require_access(request.learner_id, lesson, enforce=self.require_enrollment)

            subject = lesson.course.subject
            grade_level = lesson.course.grade_level

            current = request.current_difficulty
            if current is None:
                state = await self.mastery.get(session, request.learner_id, subject, grade_level)
                current = state.difficulty if state is not None else Difficulty.MEDIUM

            weak = await self.weak_areas.top_areas(
                session, request.learner_id, subject, self.weak_topic_limit
            )
            weak_topics = [area.topic for area in weak]

        adjustment = adapt(
            current,
            performance.consecutive_correct,
            performance.consecutive_wrong,
            performance.total_answered,
            performance.correct_count,
        )
        if adjustment.changed:
            log.info(f"Difficulty adjusted: {adjustment.reason}")

        question_number = performance.next_question_number
        question = await self.generator.generate(QuestionRequest(
            subject=subject,
            grade_level=grade_level,
            lesson_title=lesson.title,
            lesson_content=lesson.content or lesson.description or "",
            target_difficulty=adjustment.new_level,
            question_number=question_number,
            weak_topics=weak_topics,
            exclude_question_ids=list(performance.answered_question_ids),
        ))

        return {
            "question": question.to_dict(),
            "adaptation": adjustment.to_dict(),
            "context": {
                "subject": subject,
                "lessonTitle": lesson.title,
                "gradeLevel": grade_level,
                "questionNumber": question_number,
            },
            "status": status.value,
        }
