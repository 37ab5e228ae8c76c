"""
Decorators for error handling, timeouts and performance logging.

Azure DevOps SDK exceptions are mapped onto the AzureDevOpsError hierarchy so
callers only need to handle one family of errors. Requests are issued once;
there is no retry policy.
"""

import asyncio
import logging
from functools import wraps
from typing import Callable, TypeVar, Optional

from .errors import (
    AzureDevOpsError,
    map_status_code_to_error,
    TimeoutError as ADOTimeoutError
)
from .log_sanitizer import sanitize_error

# Type variable for generic function signatures
T = TypeVar('T')

logger = logging.getLogger(__name__)


def _extract_status_code(error: Exception) -> Optional[int]:
    """Find an HTTP status code on an SDK/msrest exception, if any."""
    status_code = getattr(error, 'status_code', None)

    # msrest HttpOperationError and friends keep it on the response object
    if not status_code and hasattr(error, 'response'):
        response = getattr(error, 'response', None)
        if response is not None:
            status_code = getattr(response, 'status_code', None)

    return status_code if isinstance(status_code, int) else None


def _extract_retry_after(error: Exception) -> Optional[int]:
    """Read the Retry-After header of a 429 response, in seconds."""
    response = getattr(error, 'response', None)
    headers = getattr(response, 'headers', None) if response is not None else None
    if not headers:
        return None

    retry_after_header = headers.get('Retry-After') or headers.get('retry-after')
    if not retry_after_header:
        return None

    try:
        return int(retry_after_header)
    except (ValueError, TypeError):
        # HTTP-date format
        logger.warning(f"Could not parse Retry-After header: {retry_after_header}")
        return None


def handle_ado_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to handle Azure DevOps API errors with helpful messages.

    Maps Azure DevOps SDK exceptions to custom error classes with
    user-friendly messages. asyncio.CancelledError is not an Exception
    subclass and passes through untouched.

    Example:
        @handle_ado_error
        async def list_iterations(self):
            return await self.call(self.work_client.get_team_iterations, ...)
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except AzureDevOpsError:
            # Already a custom error, re-raise as-is
            raise
        except Exception as e:
            status_code = _extract_status_code(e)

            if status_code:
                retry_after = _extract_retry_after(e) if status_code == 429 else None
                error = map_status_code_to_error(
                    status_code,
                    original_error=e,
                    retry_after=retry_after,
                    operation=func.__name__
                )
                logger.error(f"Azure DevOps API error in {func.__name__}: {error}")
                raise error from e

            logger.error(
                f"Unexpected error in {func.__name__}: {sanitize_error(e)}",
                exc_info=True
            )
            raise AzureDevOpsError(
                message=f"Unexpected error in {func.__name__}: {sanitize_error(e)}",
                original_error=e
            ) from e

    return wrapper


def with_timeout(timeout_seconds: Optional[float] = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to add a timeout to async operations.

    The timeout is read at call time: either the decorator argument or, when
    that is None, the ``request_timeout`` attribute of the bound service
    (``args[0]``). No timeout applies when both are unset.

    Example:
        @with_timeout(timeout_seconds=30)
        @handle_ado_error
        async def list_iterations(self):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            timeout = timeout_seconds
            if timeout is None and args:
                timeout = getattr(args[0], 'request_timeout', None)

            if not timeout:
                return await func(*args, **kwargs)

            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            except asyncio.TimeoutError as e:
                logger.error(f"Timeout after {timeout}s in {func.__name__}")
                raise ADOTimeoutError(
                    timeout_seconds=timeout,
                    original_error=e
                ) from e

        return wrapper
    return decorator


def azure_devops_operation(
    timeout_seconds: Optional[float] = None
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Convenience decorator combining timeout and error handling.

    Applies decorators in the correct order:
    1. Timeout wrapper (outermost)
    2. Error handling (innermost)

    Example:
        @azure_devops_operation()
        async def get_updates(self, work_item_id: int):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        decorated = handle_ado_error(func)
        decorated = with_timeout(timeout_seconds)(decorated)
        return decorated

    return decorator


class PerformanceMonitor:
    """
    Async context manager for monitoring operation performance.

    Tracks execution time and logs slow operations.
    """

    def __init__(self, operation_name: str, warn_threshold_ms: float = 10000.0):
        """
        Initialize performance monitor.

        Args:
            operation_name: Name of the operation being monitored
            warn_threshold_ms: Threshold in milliseconds to log warnings (default: 10000)
        """
        self.operation_name = operation_name
        self.warn_threshold_ms = warn_threshold_ms
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds, 0 until the block has finished."""
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) * 1000

    async def __aenter__(self):
        """Start monitoring."""
        self.start_time = asyncio.get_running_loop().time()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """End monitoring and log results."""
        self.end_time = asyncio.get_running_loop().time()
        duration_ms = self.elapsed_ms

        if duration_ms > self.warn_threshold_ms:
            logger.warning(
                f"Slow operation: {self.operation_name} took {duration_ms:.1f}ms "
                f"(threshold: {self.warn_threshold_ms:.1f}ms)"
            )
        else:
            logger.debug(
                f"Operation {self.operation_name} completed in {duration_ms:.1f}ms"
            )
