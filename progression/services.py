"""
Service wiring.

Builds the engine's services from settings and exposes them to the HTTP
layer as a FastAPI dependency.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from progression.adaptive.generator import HttpQuestionGenerator, QuestionGenerator
from progression.adaptive.service import AdaptiveSessionService
from progression.common.db import SessionFactory
from progression.common.logger import app_logger
from progression.config import Settings
from progression.gamification.service import GamificationLedger
from progression.mastery.service import MasteryTracker, WeakAreaTracker
from progression.notifications.dispatcher import NotificationDispatcher
from progression.quizzes.service import QuizScoringEngine

# Set up module logger
logger = app_logger.getChild("services")


@dataclass
class Services:
    """Everything a request handler may need."""
    session_factory: SessionFactory
    adaptive: AdaptiveSessionService
    quizzes: QuizScoringEngine
    mastery: MasteryTracker
    weak_areas: WeakAreaTracker
    ledger: GamificationLedger
    generator: QuestionGenerator
    dispatcher: Optional[NotificationDispatcher] = None
    weak_area_hint_limit: int = 3

    async def close(self) -> None:
        """Wait for in-flight notifications and release outbound clients."""
        if self.dispatcher is not None:
            await self.dispatcher.drain()
        await self.generator.close()


def build_services(
    settings: Settings,
    session_factory: SessionFactory,
    dispatcher: Optional[NotificationDispatcher] = None,
    generator: Optional[QuestionGenerator] = None
) -> Services:
    """
    Wire the engine's services.

    Args:
        settings: Application settings
        session_factory: Factory for database sessions
        dispatcher: Notification publisher; none means notifications are off
        generator: Question generator; defaults to the HTTP client

    Returns:
        Services ready to serve requests
    """
    mastery = MasteryTracker(
        history_weight=settings.MASTERY_HISTORY_WEIGHT,
        history_size=settings.MASTERY_RECENT_HISTORY_SIZE,
    )
    weak_areas = WeakAreaTracker(resolve_after=settings.WEAK_AREA_RESOLVE_AFTER)
    ledger = GamificationLedger()
    generator = generator or HttpQuestionGenerator(
        settings.QUESTION_GENERATOR_URL,
        timeout=settings.QUESTION_GENERATOR_TIMEOUT,
    )

    adaptive = AdaptiveSessionService(
        session_factory,
        generator,
        mastery,
        weak_areas,
        weak_topic_limit=settings.WEAK_AREA_HINT_LIMIT,
        require_enrollment=settings.REQUIRE_ENROLLMENT,
    )
    quizzes = QuizScoringEngine(
        session_factory,
        mastery,
        weak_areas,
        ledger,
        dispatcher=dispatcher,
        low_score_threshold=settings.LOW_SCORE_ALERT_THRESHOLD,
        require_enrollment=settings.REQUIRE_ENROLLMENT,
    )

    logger.info("Services initialized")
    return Services(
        session_factory=session_factory,
        adaptive=adaptive,
        quizzes=quizzes,
        mastery=mastery,
        weak_areas=weak_areas,
        ledger=ledger,
        generator=generator,
        dispatcher=dispatcher,
        weak_area_hint_limit=settings.WEAK_AREA_HINT_LIMIT,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the application's services."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized")
    return services
