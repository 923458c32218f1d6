"""
Main application entry point for the onboarding assessments service.

Usage:
    - Direct: python -m onboarding.main
    - ASGI server: uvicorn onboarding.main:app
"""

import os

from onboarding.api import create_app
from onboarding.assessments.generation import OpenAIGenerationClient
from onboarding.assessments.sql_repository import create_sql_store
from onboarding.common.logger import app_logger, configure_logger
from onboarding.config import settings
from onboarding.database.init_db import (
    close_database,
    create_schema,
    get_session_factory,
    initialize_database,
)

configure_logger(
    level=settings.LOG_LEVEL,
    use_json=settings.LOG_JSON,
    log_file=settings.LOG_FILE
)
logger = app_logger.getChild("main")

app = create_app()


@app.on_event("startup")
async def startup_event():
    """Initialize the database, the store and the generation client."""
    try:
        await initialize_database(
            database_url=settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT
        )
        await create_schema()

        app.state.store = create_sql_store(get_session_factory())
        app.state.generation_client = OpenAIGenerationClient(settings)

        logger.info("Application startup complete")
    except Exception as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup services on application shutdown."""
    try:
        await close_database()
        logger.info("Application shutdown complete")
    except Exception as e:
        logger.error(f"Error during application shutdown: {str(e)}")
        raise


logger.info(f"Environment: {os.environ.get('ENV', 'development')}")

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "onboarding.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level=settings.LOG_LEVEL.lower()
    )
