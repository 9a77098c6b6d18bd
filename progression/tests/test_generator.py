"""
Tests for the HTTP question generator client against a local aiohttp server.
"""

import asyncio
import json

import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from progression.adaptive.difficulty import Difficulty
from progression.adaptive.generator import HttpQuestionGenerator, QuestionRequest
from progression.common.error_handling import QuestionGenerationError

BARE_QUESTION = {
    "question": "2 + 2?",
    "options": [{"id": "a", "text": "4", "isCorrect": True}, {"id": "b", "text": "5"}],
    "topic": "addition",
}


class GeneratorStub:
    """Serves one canned response per test and records request bodies."""

    def __init__(self):
        self.status = 200
        self.body = "{}"
        self.content_type = "application/json"
        self.delay = 0.0
        self.received = []

    async def handle(self, request: web.Request) -> web.Response:
        self.received.append(await request.json())
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(status=self.status, text=self.body, content_type=self.content_type)

    def respond(self, body, status=200, content_type="application/json"):
        self.body = body
        self.status = status
        self.content_type = content_type


@pytest.fixture
def stub():
    return GeneratorStub()


@pytest_asyncio.fixture
async def server(stub):
    app = web.Application()
    app.router.add_post("/generate", stub.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def client(server):
    client = HttpQuestionGenerator(str(server.make_url("/generate")), timeout=2.0)
    yield client
    await client.close()


def _request():
    return QuestionRequest(
        subject="math",
        grade_level="5",
        lesson_title="Fractions and Decimals",
        lesson_content="Fractions",
        target_difficulty=Difficulty.HARD,
        question_number=2,
        weak_topics=["geometry"],
        exclude_question_ids=["g1"],
    )


class TestHttpQuestionGenerator:
    """Request encoding and response handling."""

    @pytest.mark.asyncio
    async def test_bare_question_object_is_accepted(self, client, stub):
        # Arrange
        stub.respond(json.dumps(BARE_QUESTION))

        # Act
        question = await client.generate(_request())

        # Assert
        assert question.question == "2 + 2?"
        assert question.correct_option_id == "a"
        assert question.difficulty is Difficulty.HARD
        assert stub.received[0]["targetDifficulty"] == "hard"
        assert stub.received[0]["weakTopics"] == ["geometry"]
        assert stub.received[0]["excludeQuestionIds"] == ["g1"]

    @pytest.mark.asyncio
    async def test_wrapped_question_object_is_accepted(self, client, stub):
        stub.respond(json.dumps({"question": {**BARE_QUESTION, "difficulty": "easy"}}))

        question = await client.generate(_request())

        assert question.topic == "addition"
        assert question.difficulty is Difficulty.EASY

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body,status,content_type", [
        ("{not json", 200, "application/json"),
        ("not json either", 200, "text/plain"),
        ('"just a string"', 200, "application/json"),
        ('{"question": "2 + 2?"}', 200, "application/json"),
        ('{"error": "overloaded"}', 502, "application/json"),
    ])
    async def test_bad_responses_are_retryable_errors(self, client, stub, body, status, content_type):
        stub.respond(body, status=status, content_type=content_type)

        with pytest.raises(QuestionGenerationError) as excinfo:
            await client.generate(_request())

        assert excinfo.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout_is_a_retryable_error(self, server, stub):
        # Arrange
        stub.delay = 1.0
        client = HttpQuestionGenerator(str(server.make_url("/generate")), timeout=0.1)

        # Act / Assert
        try:
            with pytest.raises(QuestionGenerationError, match="timed out"):
                await client.generate(_request())
        finally:
            await client.close()
