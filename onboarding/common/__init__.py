"""
Common Utilities

Shared logging and error handling for the onboarding service.
"""

from onboarding.common.logger import app_logger, get_logger, with_context, log_execution_time
from onboarding.common.error_handling import (
    OnboardingError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    ConflictError,
    GenerationError,
    GenerationTimeoutError,
    DatabaseError,
    error_response,
    log_error,
    retry,
)

__all__ = [
    'app_logger',
    'get_logger',
    'with_context',
    'log_execution_time',
    'OnboardingError',
    'ErrorCode',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'GenerationError',
    'GenerationTimeoutError',
    'DatabaseError',
    'error_response',
    'log_error',
    'retry',
]
