import pytest

from onboarding.common.error_handling import (
    ConflictError,
    DatabaseError,
    ErrorCode,
    GenerationError,
    GenerationTimeoutError,
    NotFoundError,
    OnboardingError,
    ValidationError,
    convert_exception,
    error_response,
    retry,
)


class TestErrorClasses:

    @pytest.mark.parametrize("error, status, retryable", [
        (ValidationError("bad"), 400, False),
        (NotFoundError("module", "m1", code=ErrorCode.MODULE_NOT_FOUND), 404, False),
        (ConflictError("again"), 409, False),
        (GenerationError("down"), 502, True),
        (GenerationError("empty", code=ErrorCode.EMPTY_GENERATION), 502, True),
        (GenerationTimeoutError(30), 504, True),
        (DatabaseError("disk", operation="insert"), 500, False),
    ])
    def test_status_and_retryable(self, error, status, retryable):
        assert error.status_code == status
        assert error.retryable is retryable

    def test_error_response_shape(self):
        error = NotFoundError("module", "m1", code=ErrorCode.MODULE_NOT_FOUND)

        body = error_response(error)

        assert body == {
            "status": "error",
            "code": "module_not_found",
            "error": "module with ID m1 not found",
            "retryable": False,
            "details": {"resource_type": "module", "resource_id": "m1"},
        }

    def test_error_response_wraps_plain_exceptions(self):
        body = error_response(RuntimeError("boom"), include_details=False)

        assert body == {"status": "error", "code": "unknown_error", "error": "boom", "retryable": False}

    def test_convert_exception_keeps_domain_errors(self):
        error = ValidationError("bad")

        converted = convert_exception(error, context={"path": "/x"})

        assert converted is error
        assert error.context == {"path": "/x"}

    def test_str_includes_cause(self):
        error = OnboardingError("failed", cause=KeyError("k"))

        assert "caused by KeyError" in str(error)


class TestRetry:

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        attempts = []
        retried = []

        @retry(max_retries=3, retry_delay=0, retry_exceptions=(ConnectionError,),
               on_retry=lambda n, e, d: retried.append(n))
        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset")
            return "ok"

        assert await flaky() == "ok"
        assert len(attempts) == 3
        assert retried == [1, 2]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        @retry(max_retries=2, retry_delay=0, retry_exceptions=(ConnectionError,))
        async def always_fails():
            attempts.append(1)
            raise ConnectionError("reset")

        with pytest.raises(ConnectionError):
            await always_fails()
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_other_exceptions_are_not_retried(self):
        attempts = []

        @retry(max_retries=5, retry_delay=0, retry_exceptions=(ConnectionError,))
        async def broken():
            attempts.append(1)
            raise ValueError("bad payload")

        with pytest.raises(ValueError):
            await broken()
        assert len(attempts) == 1

    def test_rejects_sync_functions(self):
        with pytest.raises(TypeError):
            retry()(lambda: None)
