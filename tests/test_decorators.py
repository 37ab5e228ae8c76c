"""
Unit tests for decorators module.

Tests error mapping, timeout handling and performance monitoring.
"""

import asyncio
from types import SimpleNamespace

import pytest
from sprint_report.decorators import (
    PerformanceMonitor,
    azure_devops_operation,
    handle_ado_error,
    with_timeout,
)
from sprint_report.errors import (
    AzureDevOpsError,
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    TimeoutError as ADOTimeoutError,
)


class SdkError(Exception):
    """Exception carrying a response, like msrest's HttpOperationError"""

    def __init__(self, status_code, headers=None):
        super().__init__(f"HTTP {status_code}")
        self.response = SimpleNamespace(status_code=status_code, headers=headers or {})


class TestHandleAdoError:
    """Test handle_ado_error decorator."""

    @pytest.mark.asyncio
    async def test_success_passes_through(self):
        @handle_ado_error
        async def ok():
            return 42

        assert await ok() == 42

    @pytest.mark.asyncio
    async def test_status_code_on_response_is_mapped(self):
        @handle_ado_error
        async def unauthorized():
            raise SdkError(401)

        with pytest.raises(AuthenticationError) as exc_info:
            await unauthorized()
        assert isinstance(exc_info.value.original_error, SdkError)

    @pytest.mark.asyncio
    async def test_retry_after_header_is_read(self):
        @handle_ado_error
        async def throttled():
            raise SdkError(429, headers={'Retry-After': '12'})

        with pytest.raises(RateLimitError) as exc_info:
            await throttled()
        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_custom_errors_are_not_rewrapped(self):
        @handle_ado_error
        async def missing():
            raise NotFoundError(resource="Iteration")

        with pytest.raises(NotFoundError):
            await missing()

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_base_error(self):
        @handle_ado_error
        async def broken():
            raise ConnectionError("connection reset")

        with pytest.raises(AzureDevOpsError) as exc_info:
            await broken()
        assert "broken" in str(exc_info.value)
        assert exc_info.value.status_code is None


class TestWithTimeout:
    """Test with_timeout decorator."""

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        @with_timeout(timeout_seconds=0.01)
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(ADOTimeoutError):
            await slow()

    @pytest.mark.asyncio
    async def test_timeout_read_from_service(self):
        class Service:
            request_timeout = 0.01

            @azure_devops_operation()
            async def slow(self):
                await asyncio.sleep(1)

        with pytest.raises(ADOTimeoutError) as exc_info:
            await Service().slow()
        assert exc_info.value.details['timeout_seconds'] == 0.01

    @pytest.mark.asyncio
    async def test_no_timeout_when_unset(self):
        class Service:
            request_timeout = None

            @azure_devops_operation()
            async def fast(self):
                await asyncio.sleep(0)
                return "done"

        assert await Service().fast() == "done"


class TestPerformanceMonitor:
    """Test PerformanceMonitor."""

    @pytest.mark.asyncio
    async def test_context_manager_records_elapsed(self):
        async with PerformanceMonitor("fetch") as monitor:
            await asyncio.sleep(0.01)
        assert monitor.elapsed_ms > 0

    @pytest.mark.asyncio
    async def test_slow_operation_warns(self, caplog):
        async with PerformanceMonitor("fetch", warn_threshold_ms=0.0):
            await asyncio.sleep(0.01)
        assert "Slow operation: fetch" in caplog.text
