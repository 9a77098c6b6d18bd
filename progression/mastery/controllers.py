"""
Mastery Controllers

This module provides read-only API endpoints for:
- A learner's mastery state per subject and grade
- A learner's open weak areas
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from progression.common.db import read_session
from progression.common.error_handling import ValidationError
from progression.common.logger import app_logger
from progression.mastery.models import MasteryState
from progression.services import Services, get_services

# Set up module logger
logger = app_logger.getChild("mastery.controllers")

# Create routers
router = APIRouter(prefix="/mastery", tags=["Mastery"])
weak_area_router = APIRouter(prefix="/weak-areas", tags=["Mastery"])


@router.get("/{learner_id}")
async def get_mastery(
    learner_id: str,
    subject: Optional[str] = Query(None, min_length=1, description="Subject code"),
    grade_level: Optional[str] = Query(None, min_length=1, alias="gradeLevel", description="Grade level code"),
    services: Services = Depends(get_services)
) -> Dict[str, Any]:
    """
    Get a learner's mastery.

    With ``subject`` and ``gradeLevel`` the single matching state is
    returned. Reading never creates it; an unknown combination reports
    ``exists: false`` with the defaults a first session would start from.
    Without both parameters every state of the learner is listed.
    """
    if (subject is None) != (grade_level is None):
        raise ValidationError(
            "subject and gradeLevel must be given together",
            details={"subject": subject, "gradeLevel": grade_level}
        )

    async with read_session(services.session_factory) as session:
        if subject is None:
            states = await services.mastery.list_for_learner(session, learner_id)
            return {"learnerId": learner_id, "states": [state.to_response() for state in states]}
        state = await services.mastery.get(session, learner_id, subject, grade_level)

    if state is None:
        return {
            "exists": False,
            "state": MasteryState.defaults(learner_id, subject, grade_level).to_response(),
        }
    return {"exists": True, "state": state.to_response()}


@weak_area_router.get("/{learner_id}")
async def get_weak_areas(
    learner_id: str,
    subject: Optional[str] = Query(None, description="Restrict to one subject"),
    limit: Optional[int] = Query(None, ge=1, le=50, description="Maximum number of areas"),
    services: Services = Depends(get_services)
) -> Dict[str, Any]:
    """
    Get a learner's open weak areas, most frequent errors first.
    """
    async with read_session(services.session_factory) as session:
        areas = await services.weak_areas.top_areas(
            session, learner_id, subject, limit or services.weak_area_hint_limit
        )

    return {
        "learnerId": learner_id,
        "subject": subject,
        "weakAreas": [area.to_response() for area in areas],
    }
