"""
Central API router and exception handlers for the progression engine.

This module provides:
- A central router that includes every area's router
- Exception handlers rendering engine errors in the standard error shape
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from progression.adaptive.controllers import router as adaptive_router
from progression.common.error_handling import (
    ErrorCode,
    ProgressionError,
    error_response,
    http_status_for,
    log_error,
)
from progression.common.logger import app_logger
from progression.gamification.controllers import router as gamification_router
from progression.mastery.controllers import router as mastery_router
from progression.mastery.controllers import weak_area_router
from progression.quizzes.controllers import router as quizzes_router

# Setup module logger
logger = app_logger.getChild("api")

# Create main API router
main_router = APIRouter()

# Adaptive routes are registered before the generic quiz routes
for router in (adaptive_router, quizzes_router, mastery_router, weak_area_router, gamification_router):
    main_router.include_router(router)


@main_router.get("/health", tags=["Health"])
async def health() -> Dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}


async def progression_exception_handler(request: Request, exc: ProgressionError) -> JSONResponse:
    """
    Render an engine error with its mapped status code.

    Args:
        request: The incoming request
        exc: The engine error

    Returns:
        A JSON response in the standard error shape
    """
    status_code = http_status_for(exc)
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    log_error(
        exc,
        level=level,
        include_stack_trace=status_code >= 500,
        context={"path": request.url.path},
        log=logger,
    )
    return JSONResponse(status_code=status_code, content=error_response(exc))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A 400 JSON response with field-level details
    """
    error_details: List[Dict[str, Any]] = []
    for error in exc.errors():
        error_details.append({
            "location": [str(part) for part in error.get("loc", [])],
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    logger.warning(f"Rejected request to {request.url.path}: {len(error_details)} validation error(s)")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "status": "error",
            "code": ErrorCode.VALIDATION_ERROR.value,
            "message": "Validation error",
            "retryable": False,
            "details": {"errors": error_details}
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the engine's exception handlers on an application."""
    app.add_exception_handler(ProgressionError, progression_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
