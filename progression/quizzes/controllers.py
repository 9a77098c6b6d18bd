"""
Quiz Controllers

API endpoint for submitting a quiz attempt.
"""

import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from progression.common.logger import app_logger
from progression.common.schemas import CamelModel
from progression.quizzes.service import QuizSubmission
from progression.services import Services, get_services

# Set up module logger
logger = app_logger.getChild("quizzes.controllers")

# Create router
router = APIRouter(prefix="/quizzes", tags=["Quizzes"])


class QuizSubmitBody(CamelModel):
    quiz_id: str = Field(..., min_length=1, description="Quiz being submitted")
    lesson_id: str = Field(..., min_length=1, description="Lesson the quiz belongs to")
    learner_id: str = Field(..., min_length=1, description="Learner identity")
    answers: Dict[str, str] = Field(default_factory=dict, description="Selected option id per question id")
    time_spent: int = Field(0, ge=0, description="Seconds spent on the attempt")
    started_at: Optional[datetime.datetime] = Field(None, description="When the attempt started")
    attempt_id: Optional[str] = Field(None, min_length=1, max_length=64, description="Client idempotency token")

    def to_submission(self) -> QuizSubmission:
        return QuizSubmission(
            quiz_id=self.quiz_id,
            lesson_id=self.lesson_id,
            learner_id=self.learner_id,
            answers=dict(self.answers),
            time_spent=self.time_spent,
            started_at=self.started_at,
            attempt_id=self.attempt_id,
        )


@router.post("/submit")
async def submit_quiz(
    body: QuizSubmitBody,
    services: Services = Depends(get_services)
) -> Dict[str, Any]:
    """
    Grade a quiz attempt and apply its progression effects.

    Resubmitting the same attempt returns the stored result with
    ``replayed`` set and changes nothing.
    """
    outcome = await services.quizzes.submit(body.to_submission())
    return outcome.to_dict()
