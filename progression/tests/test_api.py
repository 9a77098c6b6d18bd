"""
Tests for the HTTP surface: routing, request validation and error mapping.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from progression.adaptive.difficulty import Difficulty
from progression.adaptive.generator import GeneratedOption, GeneratedQuestion
from progression.common.error_handling import QuestionGenerationError
from progression.main import create_app
from progression.services import build_services

from conftest import answers_for

API = "/api/v1"


@pytest.fixture
def generator():
    generator = AsyncMock()
    generator.generate = AsyncMock(return_value=GeneratedQuestion(
        id="gen-1",
        question="What is 0.5 as a fraction?",
        options=[GeneratedOption("a", "1/2", True), GeneratedOption("b", "1/5")],
        correct_option_id="a",
        difficulty=Difficulty.MEDIUM,
        topic="decimals",
    ))
    return generator


@pytest_asyncio.fixture
async def client(settings, session_factory, catalog, dispatcher, generator):
    app = create_app(settings, use_lifespan=False)
    app.state.services = build_services(settings, session_factory, dispatcher=dispatcher, generator=generator)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    await dispatcher.drain()


def _submit_body(catalog, correct_ids, **overrides):
    body = {
        "quizId": catalog.quiz_id,
        "lessonId": catalog.lesson_id,
        "learnerId": catalog.learner_id,
        "answers": answers_for(catalog.question_ids, correct_ids),
        "timeSpent": 95,
    }
    body.update(overrides)
    return body


class TestQuizSubmitEndpoint:
    """POST /quizzes/submit"""

    @pytest.mark.asyncio
    async def test_submit_returns_graded_attempt(self, client, catalog):
        # Act
        response = await client.post(
            f"{API}/quizzes/submit",
            json=_submit_body(catalog, {"q1", "q2", "q3", "q4"}, attemptId="client-1"),
        )

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["attemptId"] == "client-1"
        assert data["replayed"] is False
        assert data["result"]["percentage"] == 80
        assert data["result"]["xpEarned"] == 100
        assert data["result"]["answers"][4]["isCorrect"] is False

    @pytest.mark.asyncio
    async def test_resubmission_is_replayed(self, client, catalog):
        body = _submit_body(catalog, {"q1"}, startedAt="2026-03-01T09:30:00Z")

        first = await client.post(f"{API}/quizzes/submit", json=body)
        second = await client.post(f"{API}/quizzes/submit", json=body)

        assert first.json()["attemptId"] == second.json()["attemptId"]
        assert second.json()["replayed"] is True
        assert second.json()["result"] == first.json()["result"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"quizId": ""},
        {"timeSpent": -3},
        {"answers": ["q1"]},
        {"startedAt": "yesterday"},
    ])
    async def test_malformed_body_is_rejected(self, client, catalog, overrides):
        response = await client.post(f"{API}/quizzes/submit", json=_submit_body(catalog, set(), **overrides))

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "validation_error"
        assert data["retryable"] is False
        assert data["details"]["errors"]

    @pytest.mark.asyncio
    async def test_unknown_question_is_a_validation_error(self, client, catalog):
        response = await client.post(
            f"{API}/quizzes/submit",
            json=_submit_body(catalog, set(), answers={"nope": "a"}),
        )

        assert response.status_code == 400
        assert response.json()["details"]["questionIds"] == ["nope"]

    @pytest.mark.asyncio
    async def test_unknown_quiz_is_not_found(self, client, catalog):
        response = await client.post(f"{API}/quizzes/submit", json=_submit_body(catalog, set(), quizId="missing"))

        assert response.status_code == 404
        assert response.json()["code"] == "not_found_error"

    @pytest.mark.asyncio
    async def test_outsider_is_forbidden(self, client, catalog):
        response = await client.post(
            f"{API}/quizzes/submit",
            json=_submit_body(catalog, set(), learnerId=catalog.outsider_id),
        )

        assert response.status_code == 403


class TestNextQuestionEndpoint:
    """POST /quizzes/adaptive/next-question"""

    @pytest.mark.asyncio
    async def test_returns_question_and_adaptation(self, client, catalog, generator):
        # Act
        response = await client.post(f"{API}/quizzes/adaptive/next-question", json={
            "lessonId": catalog.lesson_id,
            "learnerId": catalog.learner_id,
            "currentDifficulty": "medium",
            "sessionPerformance": {
                "totalAnswered": 3,
                "correctCount": 0,
                "consecutiveWrong": 3,
                "answeredQuestionIds": ["g1", "g2", "g3"],
            },
        })

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["question"]["id"] == "gen-1"
        assert data["adaptation"]["currentDifficulty"] == "easy"
        assert data["context"]["questionNumber"] == 4
        assert generator.generate.call_args.args[0].target_difficulty is Difficulty.EASY

    @pytest.mark.asyncio
    async def test_unknown_difficulty_is_rejected(self, client, catalog):
        response = await client.post(f"{API}/quizzes/adaptive/next-question", json={
            "lessonId": catalog.lesson_id,
            "learnerId": catalog.learner_id,
            "currentDifficulty": "extreme",
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_inconsistent_tally_is_rejected(self, client, catalog):
        response = await client.post(f"{API}/quizzes/adaptive/next-question", json={
            "lessonId": catalog.lesson_id,
            "learnerId": catalog.learner_id,
            "sessionPerformance": {"totalAnswered": 1, "correctCount": 4},
        })

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_generator_failure_is_retryable(self, client, catalog, generator):
        generator.generate.side_effect = QuestionGenerationError("Question generator unavailable")

        response = await client.post(f"{API}/quizzes/adaptive/next-question", json={
            "lessonId": catalog.lesson_id,
            "learnerId": catalog.learner_id,
        })

        assert response.status_code == 503
        assert response.json()["retryable"] is True


class TestReadEndpoints:
    """Mastery, weak areas, gamification and health."""

    @pytest.mark.asyncio
    async def test_mastery_defaults_before_any_session(self, client, catalog):
        response = await client.get(f"{API}/mastery/{catalog.learner_id}", params={
            "subject": "math", "gradeLevel": "5",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["exists"] is False
        assert data["state"]["masteryLevel"] == 50
        assert data["state"]["currentDifficulty"] == "medium"

    @pytest.mark.asyncio
    async def test_mastery_after_a_submission(self, client, catalog):
        await client.post(f"{API}/quizzes/submit", json=_submit_body(catalog, {"q1", "q2", "q3", "q4"}))

        single = await client.get(f"{API}/mastery/{catalog.learner_id}", params={
            "subject": "math", "gradeLevel": "5",
        })
        listing = await client.get(f"{API}/mastery/{catalog.learner_id}")

        assert single.json()["exists"] is True
        assert single.json()["state"]["masteryLevel"] == 59
        assert [state["subject"] for state in listing.json()["states"]] == ["math"]

    @pytest.mark.asyncio
    async def test_mastery_needs_subject_and_grade_together(self, client, catalog):
        response = await client.get(f"{API}/mastery/{catalog.learner_id}", params={"subject": "math"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_weak_areas(self, client, catalog):
        await client.post(f"{API}/quizzes/submit", json=_submit_body(catalog, {"q1", "q2"}))

        response = await client.get(f"{API}/weak-areas/{catalog.learner_id}", params={"subject": "math"})

        assert response.status_code == 200
        assert [area["topic"] for area in response.json()["weakAreas"]] == ["geometry", "decimals"]

    @pytest.mark.asyncio
    async def test_gamification_profile(self, client, catalog):
        await client.post(f"{API}/quizzes/submit", json=_submit_body(catalog, set(catalog.question_ids)))

        response = await client.get(f"{API}/gamification/{catalog.learner_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["xp"] == 400
        assert data["level"] == 3
        assert data["currentStreak"] == 1
        assert {badge["code"] for badge in data["badges"]} == {"first_lesson", "first_quiz", "perfect_quiz"}

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
