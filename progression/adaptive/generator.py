"""
Question Generator Client

The engine never writes question text itself. It parameterizes an external
generator with the target difficulty and the learner's weak topics and
passes the generated question through to the caller.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from progression.adaptive.difficulty import Difficulty
from progression.common.error_handling import QuestionGenerationError
from progression.common.logger import app_logger
from progression.common.serialization import SerializableMixin

# Module logger
logger = app_logger.getChild("adaptive.generator")


@dataclass
class QuestionRequest(SerializableMixin):
    """Parameters sent to the question generator."""

    __serializable_fields__ = [
        "subject",
        ("grade_level", "gradeLevel"),
        ("lesson_title", "lessonTitle"),
        ("lesson_content", "lessonContent"),
        ("target_difficulty", "targetDifficulty"),
        ("weak_topics", "weakTopics"),
        ("exclude_question_ids", "excludeQuestionIds"),
        ("question_number", "questionNumber"),
    ]

    subject: str
    grade_level: str
    lesson_title: str
    lesson_content: str
    target_difficulty: Difficulty
    question_number: int
    weak_topics: List[str] = field(default_factory=list)
    exclude_question_ids: List[str] = field(default_factory=list)


@dataclass
class GeneratedOption(SerializableMixin):
    """One answer option of a generated question."""

    __serializable_fields__ = ["id", "text", ("is_correct", "isCorrect")]

    id: str
    text: str
    is_correct: bool = False


@dataclass
class GeneratedQuestion(SerializableMixin):
    """A single question produced by the generator."""

    __serializable_fields__ = [
        "id", "question", "options",
        ("correct_option_id", "correctOptionId"),
        "explanation", "difficulty", "topic",
    ]

    id: str
    question: str
    options: List[GeneratedOption]
    correct_option_id: str
    difficulty: Difficulty
    explanation: Optional[str] = None
    topic: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], fallback: Difficulty) -> 'GeneratedQuestion':
        """
        Build a question from the generator's JSON payload.

        Args:
            payload: Decoded response body
            fallback: Difficulty to use when the payload carries none

        Returns:
            Parsed question

        Raises:
            QuestionGenerationError: If the payload is not a usable question
        """
        try:
            options = [
                GeneratedOption(
                    id=str(option.get("id") or chr(ord("a") + index)),
                    text=str(option["text"]),
                    is_correct=bool(option.get("isCorrect", False)),
                )
                for index, option in enumerate(payload["options"])
            ]
            correct_id = payload.get("correctOptionId") or next(
                (option.id for option in options if option.is_correct), None
            )
            if not options or correct_id is None:
                raise ValueError("question has no correct option")

            for option in options:
                option.is_correct = option.id == correct_id

            return cls(
                id=str(payload.get("id") or uuid.uuid4()),
                question=str(payload["question"]),
                options=options,
                correct_option_id=str(correct_id),
                difficulty=Difficulty(payload.get("difficulty") or fallback.value),
                explanation=payload.get("explanation"),
                topic=payload.get("topic"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise QuestionGenerationError("Generator returned a malformed question", cause=e) from e


class QuestionGenerator(ABC):
    """Contract for anything that can produce the next question."""

    @abstractmethod
    async def generate(self, request: QuestionRequest) -> GeneratedQuestion:
        """
        Produce one question for the given parameters.

        Raises:
            QuestionGenerationError: On any upstream failure
        """

    async def close(self) -> None:
        """Release any held resources."""


class HttpQuestionGenerator(QuestionGenerator):
    """
    Generator client that POSTs the request as JSON to an HTTP endpoint.

    No retries are attempted; failures surface as retryable errors and the
    caller decides whether to ask again.
    """

    def __init__(self, url: str, timeout: float = 20.0):
        """
        Initialize the client.

        Args:
            url: Endpoint accepting the generation request
            timeout: Total request timeout in seconds
        """
        self.url = url
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._initialize_lock = asyncio.Lock()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Create the HTTP session on first use."""
        if self._session is not None:
            return self._session

        async with self._initialize_lock:
            if self._session is None:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                )
        return self._session

    async def generate(self, request: QuestionRequest) -> GeneratedQuestion:
        session = await self._ensure_session()
        details = {"url": self.url, "questionNumber": request.question_number}

        try:
            async with session.post(self.url, json=request.to_dict()) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(f"Question generator returned {response.status}: {error_text[:200]}")
                    raise QuestionGenerationError(
                        f"Question generator returned HTTP {response.status}",
                        details={**details, "status": response.status}
                    )
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            logger.error(f"Question generator timed out after {self.timeout}s")
            raise QuestionGenerationError("Question generator timed out", details=details, cause=e) from e
        except aiohttp.ClientError as e:
            logger.error(f"Question generator request failed: {e}")
            raise QuestionGenerationError("Question generator unavailable", details=details, cause=e) from e
        except ValueError as e:
            logger.error(f"Question generator returned invalid JSON: {e}")
            raise QuestionGenerationError("Generator returned invalid JSON", details=details, cause=e) from e

        # Either a bare question object or one wrapped as {"question": {...}}
        question = payload
        if isinstance(payload, dict) and isinstance(payload.get("question"), dict):
            question = payload["question"]
        if not isinstance(question, dict):
            raise QuestionGenerationError("Generator returned a malformed question", details=details)
        return GeneratedQuestion.from_payload(question, request.target_difficulty)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
