"""
Error Handling

Exception hierarchy and helpers shared by the onboarding service:

1. Input errors (validation, not found, conflict) surface as 4xx responses
2. Generation errors (external text-generation failures) surface as 502 and
   are safe to retry because nothing was persisted
3. Database errors surface as 500 and are never masked as success
"""

import logging
import traceback
import asyncio
import random
import functools
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union, cast
from datetime import datetime
from pydantic import BaseModel, Field, validator

F = TypeVar('F', bound=Callable)

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Error codes returned to API callers"""
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_ERROR = "not_found_error"
    CONFLICT_ERROR = "conflict_error"

    MODULE_NOT_FOUND = "module_not_found"
    ASSESSMENT_NOT_FOUND = "assessment_not_found"

    GENERATION_ERROR = "generation_error"
    GENERATION_TIMEOUT = "generation_timeout"
    EMPTY_GENERATION = "empty_generation"

    DATABASE_ERROR = "database_error"


HTTP_STATUS_BY_CODE = {
    ErrorCode.UNKNOWN_ERROR: 500,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND_ERROR: 404,
    ErrorCode.CONFLICT_ERROR: 409,
    ErrorCode.MODULE_NOT_FOUND: 404,
    ErrorCode.ASSESSMENT_NOT_FOUND: 404,
    ErrorCode.GENERATION_ERROR: 502,
    ErrorCode.GENERATION_TIMEOUT: 504,
    ErrorCode.EMPTY_GENERATION: 502,
    ErrorCode.DATABASE_ERROR: 500,
}


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    stack_trace: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None

    class Config:
        use_enum_values = True

    @validator('stack_trace', pre=True, always=False)
    def validate_stack_trace(cls, v):
        """Split a formatted traceback into lines"""
        if isinstance(v, str):
            return v.splitlines()
        return v


class OnboardingError(Exception):
    """Base exception class for all onboarding service errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now()

    @property
    def status_code(self) -> int:
        """HTTP status this error maps to"""
        return HTTP_STATUS_BY_CODE.get(self.code, 500)

    @property
    def retryable(self) -> bool:
        """Whether a caller may simply resend the same request"""
        return self.code in (
            ErrorCode.GENERATION_ERROR,
            ErrorCode.GENERATION_TIMEOUT,
            ErrorCode.EMPTY_GENERATION,
        )

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            details=details,
            exception_type=type(self).__name__,
            stack_trace=traceback.format_exc() if include_stack_trace else None,
            context=self.context
        )

    def to_dict(self, include_stack_trace: bool = False) -> Dict[str, Any]:
        return self.to_error_info(include_stack_trace).dict()

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {self.cause}"
        return base_str


class ValidationError(OnboardingError):
    """Raised when a request carries missing or malformed identifiers or payloads"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )


class NotFoundError(OnboardingError):
    """Raised when a referenced module, assessment or employee record does not exist"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        code: ErrorCode = ErrorCode.NOT_FOUND_ERROR,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"{resource_type} with ID {resource_id} not found",
            code=code,
            severity=ErrorSeverity.WARNING,
            details={"resource_type": resource_type, "resource_id": resource_id},
            context=context
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(OnboardingError):
    """Raised when a write would violate a one-per-key rule"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.CONFLICT_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause
        )


class GenerationError(OnboardingError):
    """Raised when the text-generation service fails or produces nothing usable"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.GENERATION_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.ERROR,
            details=details,
            cause=cause,
            context=context
        )


class GenerationTimeoutError(GenerationError):
    """Raised when a generation call exceeds its time limit"""

    def __init__(
        self,
        timeout_seconds: float,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"Generation timed out after {timeout_seconds}s",
            code=ErrorCode.GENERATION_TIMEOUT,
            details={"timeout_seconds": timeout_seconds},
            cause=cause,
            context=context
        )


class DatabaseError(OnboardingError):
    """Raised when the backing store fails a read or write"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        details = {"operation": operation} if operation else None
        super().__init__(
            message=message,
            code=ErrorCode.DATABASE_ERROR,
            severity=ErrorSeverity.ERROR,
            details=details,
            cause=cause,
            context=context
        )


def convert_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    context: Optional[Dict[str, Any]] = None
) -> OnboardingError:
    """
    Wrap an arbitrary exception as an OnboardingError.

    Args:
        exception: The exception to convert
        default_message: Message used when the exception has none
        context: Optional additional context

    Returns:
        The converted error
    """
    if isinstance(exception, OnboardingError):
        if context:
            exception.context.update(context)
        return exception

    return OnboardingError(
        message=str(exception) or default_message,
        cause=exception,
        context=context
    )


def retry(
    max_retries: int = 3,
    retry_delay: float = 1.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.1,
    retry_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    ignore_exceptions: Tuple[Type[Exception], ...] = (),
    on_retry: Optional[Callable[[int, Exception, float], None]] = None
):
    """
    Decorator retrying a coroutine function with exponential backoff.

    Args:
        max_retries: Maximum number of retries after the first attempt
        retry_delay: Initial delay between retries in seconds
        backoff_factor: Multiplier applied to the delay after each retry
        jitter: Random jitter factor applied to each delay
        retry_exceptions: Exception types that trigger a retry
        ignore_exceptions: Exception types re-raised immediately
        on_retry: Optional callback invoked before each retry

    Returns:
        Decorated function
    """
    def decorator(func: F) -> F:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"retry() expects a coroutine function, got {func.__name__}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            retries = 0
            delay = retry_delay

            while True:
                try:
                    return await func(*args, **kwargs)
                except ignore_exceptions:
                    raise
                except retry_exceptions as e:
                    retries += 1
                    if retries > max_retries:
                        raise

                    actual_delay = delay * (1 + random.uniform(-jitter, jitter))
                    if on_retry:
                        on_retry(retries, e, actual_delay)

                    logger.warning(
                        f"Retry {retries}/{max_retries} for {func.__name__} "
                        f"after {actual_delay:.2f}s due to {type(e).__name__}: {e}"
                    )
                    await asyncio.sleep(actual_delay)
                    delay *= backoff_factor

        return cast(F, async_wrapper)

    return decorator


def error_response(
    error: Union[OnboardingError, Exception],
    include_details: bool = True,
    include_stack_trace: bool = False
) -> Dict[str, Any]:
    """
    Build the JSON body returned for a failed request.

    Args:
        error: The error to describe
        include_details: Whether to include error details
        include_stack_trace: Whether to include the stack trace

    Returns:
        Response dictionary
    """
    if not isinstance(error, OnboardingError):
        error = convert_exception(error)

    error_info = error.to_error_info(include_stack_trace=include_stack_trace)

    response = {
        "status": "error",
        "code": error_info.code,
        "error": error_info.message,
        "retryable": error.retryable
    }

    if include_details and error_info.details:
        response["details"] = error_info.details

    return response


def log_error(
    error: Union[OnboardingError, Exception],
    level: int = logging.ERROR,
    include_stack_trace: bool = True,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log an error in a uniform format.

    Args:
        error: The error to log
        level: Logging level
        include_stack_trace: Whether to append the current traceback
        context: Additional context to include
    """
    if not isinstance(error, OnboardingError):
        error = convert_exception(error, context=context)
    elif context:
        error.context.update(context)

    message = f"ERROR [{error.code.value}]: {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {error.cause}"

    if include_stack_trace:
        message += f"\n{traceback.format_exc()}"

    logger.log(level, message)
