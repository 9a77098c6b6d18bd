"""
Adaptive Session Controllers

API endpoint serving the next question of an adaptive session.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from progression.adaptive.difficulty import Difficulty
from progression.adaptive.models import SessionPerformance
from progression.adaptive.service import NextQuestionRequest
from progression.common.logger import app_logger
from progression.common.schemas import CamelModel
from progression.services import Services, get_services

# Set up module logger
logger = app_logger.getChild("adaptive.controllers")

# Create router
router = APIRouter(prefix="/quizzes/adaptive", tags=["Adaptive"])


class SessionPerformanceBody(CamelModel):
    total_answered: int = Field(0, ge=0, description="Questions answered so far")
    correct_count: int = Field(0, ge=0, description="Correct answers so far")
    consecutive_correct: int = Field(0, ge=0, description="Trailing run of correct answers")
    consecutive_wrong: int = Field(0, ge=0, description="Trailing run of wrong answers")
    answered_question_ids: List[str] = Field(default_factory=list, description="Questions already served")
    difficulty_history: List[Difficulty] = Field(default_factory=list, description="Difficulty of each answered question")


class NextQuestionBody(CamelModel):
    lesson_id: str = Field(..., min_length=1, description="Lesson being practiced")
    learner_id: str = Field(..., min_length=1, description="Learner identity")
    current_difficulty: Optional[Difficulty] = Field(
        None, description="Difficulty of the last question; omitted on the first request"
    )
    session_performance: SessionPerformanceBody = Field(
        default_factory=SessionPerformanceBody, description="Running session tally"
    )

    def to_request(self) -> NextQuestionRequest:
        performance = self.session_performance
        return NextQuestionRequest(
            lesson_id=self.lesson_id,
            learner_id=self.learner_id,
            current_difficulty=Difficulty(self.current_difficulty) if self.current_difficulty else None,
            performance=SessionPerformance(
                total_answered=performance.total_answered,
                correct_count=performance.correct_count,
                consecutive_correct=performance.consecutive_correct,
                consecutive_wrong=performance.consecutive_wrong,
                answered_question_ids=list(performance.answered_question_ids),
                difficulty_history=[Difficulty(level) for level in performance.difficulty_history],
            ),
        )


@router.post("/next-question")
async def next_question(
    body: NextQuestionBody,
    services: Services = Depends(get_services)
) -> Dict[str, Any]:
    """
    Adapt the difficulty to the session tally and return a new question.

    Returns:
        Dict with ``question``, ``adaptation`` and ``context``
    """
    result = await services.adaptive.next_question(body.to_request())
    return {"success": True, **result}
