"""
Main application entry point for the progression engine.

This module builds the FastAPI application, wires the services on startup
and releases them on shutdown.

Usage:
    - Direct: python -m progression.main
    - ASGI server: uvicorn progression.main:app
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from progression.api import main_router, register_exception_handlers
from progression.common.logger import app_logger, configure_logger
from progression.common.redis import get_redis_client, reset_redis_client
from progression.config import Settings, get_settings
from progression.database.init_db import (
    close_database,
    create_schema,
    get_session_factory,
    initialize_database,
    seed_badges,
)
from progression.notifications.dispatcher import NotificationDispatcher
from progression.services import build_services

# Setup module logger
logger = app_logger.getChild("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup and release them on shutdown."""
    settings: Settings = app.state.settings
    try:
        engine = await initialize_database(
            database_url=settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT
        )
        if settings.DATABASE_URL.startswith("sqlite"):
            await create_schema(engine)

        session_factory = get_session_factory()
        await seed_badges(session_factory)

        dispatcher = NotificationDispatcher(
            get_redis_client(),
            alert_channel=settings.ALERT_CHANNEL,
            notification_channel=settings.NOTIFICATION_CHANNEL,
            low_score_threshold=settings.LOW_SCORE_ALERT_THRESHOLD,
        )
        app.state.services = build_services(settings, session_factory, dispatcher=dispatcher)
        logger.info("Application startup complete")
    except Exception as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        raise

    yield

    try:
        await app.state.services.close()
        await reset_redis_client()
        await close_database()
        logger.info("Application shutdown complete")
    except Exception as e:
        logger.error(f"Error during application shutdown: {str(e)}")
        raise


def create_app(settings: Optional[Settings] = None, use_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to the cached settings)
        use_lifespan: Whether startup wires the database and services;
            callers that install ``app.state.services`` themselves pass False

    Returns:
        The configured application
    """
    settings = settings or get_settings()
    configure_logger(
        level=settings.LOG_LEVEL,
        use_json=settings.LOG_JSON,
        log_file=settings.LOG_FILE,
    )

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Adaptive assessment and progression engine",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else None,
    )
    app.state.settings = settings

    register_exception_handlers(app)
    app.include_router(main_router, prefix=settings.API_V1_STR)

    logger.info(f"Application initialized with {len(app.routes)} routes")
    logger.info(f"Environment: {settings.ENV}")
    return app


app = create_app()

# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    # Get configuration from environment or use defaults
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "progression.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level="info"
    )
