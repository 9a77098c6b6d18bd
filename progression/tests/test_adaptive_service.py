"""
Tests for the next-question step of an adaptive session.
"""

from unittest.mock import AsyncMock

import pytest

from progression.adaptive.difficulty import Difficulty
from progression.adaptive.generator import GeneratedOption, GeneratedQuestion
from progression.adaptive.models import SessionPerformance
from progression.adaptive.service import AdaptiveSessionService, NextQuestionRequest
from progression.common.db import read_session, unit_of_work
from progression.common.error_handling import (
    AccessDeniedError,
    NotFoundError,
    QuestionGenerationError,
    ValidationError,
)
from progression.mastery.service import SessionAnswer


def _question(difficulty=Difficulty.MEDIUM):
    return GeneratedQuestion(
        id="gen-1",
        question="What is 1/2 + 1/4?",
        options=[GeneratedOption("a", "3/4", True), GeneratedOption("b", "2/6")],
        correct_option_id="a",
        difficulty=difficulty,
        topic="fractions",
    )


@pytest.fixture
def generator():
    generator = AsyncMock()
    generator.generate = AsyncMock(return_value=_question())
    return generator


@pytest.fixture
def adaptive_service(session_factory, generator, mastery_tracker, weak_area_tracker):
    return AdaptiveSessionService(session_factory, generator, mastery_tracker, weak_area_tracker)


def _sent(generator):
    """The QuestionRequest passed to the generator."""
    return generator.generate.call_args.args[0]


class TestNextQuestion:
    """One step of the adaptive loop."""

    @pytest.mark.asyncio
    async def test_streak_escalates_and_request_is_built(self, catalog, adaptive_service, generator):
        # Arrange
        request = NextQuestionRequest(
            lesson_id=catalog.lesson_id,
            learner_id=catalog.learner_id,
            current_difficulty=Difficulty.EASY,
            performance=SessionPerformance(
                total_answered=2,
                correct_count=2,
                consecutive_correct=2,
                answered_question_ids=["g1", "g2"],
            ),
        )

        # Act
        result = await adaptive_service.next_question(request)

        # Assert
        assert result["adaptation"]["previousDifficulty"] == "easy"
        assert result["adaptation"]["currentDifficulty"] == "medium"
        assert result["adaptation"]["difficultyChanged"] is True
        assert result["context"] == {
            "subject": "math",
            "lessonTitle": "Fractions and Decimals",
            "gradeLevel": "5",
            "questionNumber": 3,
        }
        assert result["status"] == "in_progress"
        assert result["question"]["correctOptionId"] == "a"

        sent = _sent(generator)
        assert sent.target_difficulty is Difficulty.MEDIUM
        assert sent.question_number == 3
        assert sent.exclude_question_ids == ["g1", "g2"]
        assert sent.lesson_content == "Fractions, decimals and shapes"

    @pytest.mark.asyncio
    async def test_first_question_starts_at_medium(self, catalog, adaptive_service, generator):
        # Act
        result = await adaptive_service.next_question(
            NextQuestionRequest(lesson_id=catalog.lesson_id, learner_id=catalog.learner_id)
        )

        # Assert
        assert result["adaptation"]["difficultyChanged"] is False
        assert result["context"]["questionNumber"] == 1
        assert _sent(generator).target_difficulty is Difficulty.MEDIUM

    @pytest.mark.asyncio
    async def test_session_seeds_from_stored_mastery(
        self, catalog, adaptive_service, generator, session_factory, mastery_tracker
    ):
        # Arrange
        async with unit_of_work(session_factory) as session:
            await mastery_tracker.commit_session(
                session, "learner-1", "math", "5", [SessionAnswer(Difficulty.HARD, True)], Difficulty.HARD, 1, 0
            )

        # Act
        await adaptive_service.next_question(
            NextQuestionRequest(lesson_id=catalog.lesson_id, learner_id=catalog.learner_id)
        )

        # Assert
        assert _sent(generator).target_difficulty is Difficulty.HARD

    @pytest.mark.asyncio
    async def test_weak_topics_are_passed_as_hints(
        self, catalog, adaptive_service, generator, session_factory, weak_area_tracker
    ):
        # Arrange
        async with unit_of_work(session_factory) as session:
            for topic in ("decimals", "geometry", "geometry"):
                await weak_area_tracker.record_outcome(session, "learner-1", "math", topic, False)
            await weak_area_tracker.record_outcome(session, "learner-1", "art", "colors", False)

        # Act
        await adaptive_service.next_question(
            NextQuestionRequest(lesson_id=catalog.lesson_id, learner_id=catalog.learner_id)
        )

        # Assert
        assert _sent(generator).weak_topics == ["geometry", "decimals"]

    @pytest.mark.asyncio
    async def test_no_state_is_written(self, catalog, adaptive_service, session_factory, mastery_tracker):
        await adaptive_service.next_question(
            NextQuestionRequest(lesson_id=catalog.lesson_id, learner_id=catalog.learner_id)
        )

        async with read_session(session_factory) as session:
            assert await mastery_tracker.get(session, "learner-1", "math", "5") is None


class TestNextQuestionErrors:
    """Failures surface before or instead of a question."""

    @pytest.mark.asyncio
    async def test_inconsistent_tally(self, catalog, adaptive_service, generator):
        request = NextQuestionRequest(
            lesson_id=catalog.lesson_id,
            learner_id=catalog.learner_id,
            performance=SessionPerformance(total_answered=1, correct_count=2),
        )

        with pytest.raises(ValidationError):
            await adaptive_service.next_question(request)

        generator.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, catalog, adaptive_service):
        with pytest.raises(NotFoundError):
            await adaptive_service.next_question(
                NextQuestionRequest(lesson_id="missing", learner_id=catalog.learner_id)
            )

    @pytest.mark.asyncio
    async def test_not_enrolled(self, catalog, adaptive_service):
        with pytest.raises(AccessDeniedError):
            await adaptive_service.next_question(
                NextQuestionRequest(lesson_id=catalog.other_lesson_id, learner_id=catalog.learner_id)
            )

    @pytest.mark.asyncio
    async def test_generator_failure_is_retryable(self, catalog, adaptive_service, generator):
        generator.generate.side_effect = QuestionGenerationError("Question generator timed out")

        with pytest.raises(QuestionGenerationError) as excinfo:
            await adaptive_service.next_question(
                NextQuestionRequest(lesson_id=catalog.lesson_id, learner_id=catalog.learner_id)
            )

        assert excinfo.value.retryable is True


class TestGeneratedQuestion:
    """Parsing the generator's payload."""

    def test_correct_option_from_flags(self):
        question = GeneratedQuestion.from_payload(
            {
                "question": "2 + 2?",
                "options": [{"text": "3"}, {"text": "4", "isCorrect": True}],
            },
            Difficulty.EASY,
        )

        assert question.correct_option_id == "b"
        assert question.difficulty is Difficulty.EASY
        assert [option.is_correct for option in question.options] == [False, True]

    def test_explicit_correct_option_wins(self):
        question = GeneratedQuestion.from_payload(
            {
                "id": "x",
                "question": "2 + 2?",
                "options": [{"id": "a", "text": "4"}, {"id": "b", "text": "5", "isCorrect": True}],
                "correctOptionId": "a",
                "difficulty": "hard",
            },
            Difficulty.EASY,
        )

        assert question.correct_option_id == "a"
        assert question.difficulty is Difficulty.HARD
        assert question.options[1].is_correct is False

    @pytest.mark.parametrize("payload", [
        {"options": [{"text": "4", "isCorrect": True}]},
        {"question": "2 + 2?", "options": [{"text": "4"}]},
        {"question": "2 + 2?", "options": []},
        {"question": "2 + 2?", "options": [{"text": "4", "isCorrect": True}], "difficulty": "extreme"},
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(QuestionGenerationError):
            GeneratedQuestion.from_payload(payload, Difficulty.MEDIUM)
