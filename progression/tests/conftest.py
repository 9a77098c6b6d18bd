"""
Shared fixtures for the progression engine tests.

Every database test runs against a fresh in-memory SQLite database with the
schema created from metadata and the default badge catalog seeded.
"""

import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from progression.catalog.models import Course, Enrollment, Learner, Lesson, Quiz, QuizQuestion
from progression.common.db import unit_of_work
from progression.config import Settings
from progression.database.init_db import build_engine, build_session_factory, create_schema, seed_badges
from progression.gamification.service import GamificationLedger
from progression.mastery.service import MasteryTracker, WeakAreaTracker
from progression.notifications.dispatcher import NotificationDispatcher


QUESTION_LAYOUT = [
    # (id, difficulty, topic)
    ("q1", "easy", "fractions"),
    ("q2", "easy", "fractions"),
    ("q3", "medium", "decimals"),
    ("q4", "medium", "geometry"),
    ("q5", "hard", "geometry"),
]


@pytest.fixture
def settings():
    """Settings for tests, independent of the process environment."""
    return Settings(
        ENV="testing",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REQUIRE_ENROLLMENT=True,
    )


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with the full schema."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """SQLite file database, for tests that need several live connections."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'progression.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Session factory over the test engine, with badges seeded."""
    factory = build_session_factory(engine)
    await seed_badges(factory)
    return factory


@pytest_asyncio.fixture
async def catalog(session_factory):
    """
    A learner enrolled in a math course with one five-question quiz.

    Every question is worth 10 points and option ``a`` is correct.
    """
    async with unit_of_work(session_factory) as session:
        session.add_all([
            Learner(id="learner-1", display_name="Ada"),
            Learner(id="learner-2", display_name="Grace"),
            Course(id="course-math", title="Math 5", subject="math", grade_level="5"),
            Course(id="course-art", title="Art 5", subject="art", grade_level="5"),
        ])
        await session.flush()
        session.add_all([
            Lesson(
                id="lesson-1",
                course_id="course-math",
                title="Fractions and Decimals",
                content="Fractions, decimals and shapes",
                position=1,
            ),
            Lesson(id="lesson-art", course_id="course-art", title="Colors", position=1),
            Enrollment(learner_id="learner-1", course_id="course-math"),
        ])
        await session.flush()
        session.add(Quiz(id="quiz-1", lesson_id="lesson-1", title="Fractions Quiz", passing_score=70))
        session.add(Quiz(id="quiz-art", lesson_id="lesson-art", title="Colors Quiz", passing_score=70))
        await session.flush()
        for position, (question_id, difficulty, topic) in enumerate(QUESTION_LAYOUT):
            session.add(QuizQuestion(
                id=question_id,
                quiz_id="quiz-1",
                prompt=f"Question {question_id}",
                options=[
                    {"id": "a", "text": "Right", "isCorrect": True},
                    {"id": "b", "text": "Wrong", "isCorrect": False},
                ],
                points=10,
                difficulty=difficulty,
                topic=topic,
                position=position,
            ))

    return SimpleNamespace(
        learner_id="learner-1",
        outsider_id="learner-2",
        lesson_id="lesson-1",
        quiz_id="quiz-1",
        other_lesson_id="lesson-art",
        other_quiz_id="quiz-art",
        subject="math",
        grade_level="5",
        question_ids=[question_id for question_id, _, _ in QUESTION_LAYOUT],
    )


@pytest.fixture
def mastery_tracker():
    return MasteryTracker(history_weight=0.7, history_size=50)


@pytest.fixture
def weak_area_tracker():
    return WeakAreaTracker(resolve_after=3)


@pytest.fixture
def ledger():
    return GamificationLedger()


@pytest.fixture
def redis_client():
    """Redis stand-in recording published messages."""
    client = AsyncMock()
    client.publish = AsyncMock(return_value=1)
    return client


@pytest.fixture
def dispatcher(redis_client):
    return NotificationDispatcher(
        redis_client,
        alert_channel="test:alerts",
        notification_channel="test:notifications",
        low_score_threshold=50,
    )


def answers_for(question_ids, correct_ids):
    """Answer map choosing the right option for ``correct_ids`` only."""
    return {question_id: ("a" if question_id in correct_ids else "b") for question_id in question_ids}


def day(offset: int) -> datetime.date:
    """A fixed calendar date shifted by ``offset`` days."""
    return datetime.date(2026, 3, 1) + datetime.timedelta(days=offset)
