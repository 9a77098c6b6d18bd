"""
Gamification Controllers Module

This module provides the API endpoint for a learner's gamification
profile: XP, level progress, streaks and badges.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from progression.common.db import read_session
from progression.common.logger import app_logger
from progression.services import Services, get_services

# Set up module logger
logger = app_logger.getChild("gamification.controllers")

# Create router
router = APIRouter(prefix="/gamification", tags=["Gamification"])


@router.get("/{learner_id}")
async def get_gamification_profile(
    learner_id: str,
    services: Services = Depends(get_services)
) -> Dict[str, Any]:
    """
    Get a learner's gamification profile.

    Returns:
        Dict with XP, level, level progress, streaks and owned badges
    """
    async with read_session(services.session_factory) as session:
        return await services.ledger.get_profile(session, learner_id)
