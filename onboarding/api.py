"""
Application factory and shared API utilities for the onboarding service.

This module provides:
- ``create_app``, which builds the FastAPI application with its routers
- Exception handlers mapping domain errors onto HTTP status codes
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from onboarding.assessments.router import router as assessments_router
from onboarding.common.error_handling import ErrorCode, OnboardingError, error_response, log_error
from onboarding.config import settings

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request body validation errors.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A 400 response listing each invalid field
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": error.get("loc", []),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "status": "error",
            "code": ErrorCode.VALIDATION_ERROR.value,
            "error": "Validation error",
            "retryable": False,
            "details": error_details
        }
    )


async def onboarding_exception_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    """Map a domain error onto its status code."""
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    log_error(exc, level=level, include_stack_trace=False, context={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


def create_app() -> FastAPI:
    """Build the application without touching the database."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Generation, caching and grading of onboarding assessments",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(OnboardingError, onboarding_exception_handler)

    app.include_router(assessments_router, prefix=settings.API_PREFIX, tags=["assessments"])

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

    logger.info(f"Application created with {len(app.routes)} routes")
    return app
