"""
Custom exception classes for the sprint report generator.

Provides structured error handling with helpful messages for common
Azure DevOps API errors and for missing configuration.
"""

from typing import Optional, Any


class ConfigurationError(Exception):
    """
    Raised when required connection settings are missing or invalid.

    Detected before any network call is made; the run is aborted.

    Attributes:
        missing: Names of the settings that are missing
    """

    def __init__(self, message: str, missing: Optional[list] = None):
        self.missing = list(missing or [])
        super().__init__(message)


class AzureDevOpsError(Exception):
    """
    Base exception for Azure DevOps API errors.

    Attributes:
        status_code: HTTP status code from the API response
        message: Human-readable error message
        original_error: The original exception that was caught
        details: Additional error details
    """

    def __init__(
        self,
        message: str = "Azure DevOps API error",
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        self.status_code = status_code
        self.message = message
        self.original_error = original_error
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of the error."""
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message


class NotFoundError(AzureDevOpsError):
    """
    Raised when a resource is not found (HTTP 404).

    This can occur when:
    - The project or team name is wrong
    - The iteration id no longer exists
    - The work item was deleted or is not visible to the token
    """

    def __init__(
        self,
        resource: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        message = "Resource not found. Please verify the project, team and iteration settings."
        if resource:
            message = f"{resource} not found. Please verify it exists and you have access."

        super().__init__(
            message=message,
            status_code=404,
            original_error=original_error,
            details={'resource': resource} if resource else None
        )


class AuthenticationError(AzureDevOpsError):
    """
    Raised when authentication fails (HTTP 401).

    This can occur when:
    - The personal access token has expired
    - The token is invalid
    """

    def __init__(
        self,
        message: str = "Authentication failed. Your personal access token may have expired.",
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            status_code=401,
            original_error=original_error
        )


class PermissionDeniedError(AzureDevOpsError):
    """
    Raised when the token lacks permission for an operation (HTTP 403).

    Reading sprint data needs the 'vso.work' scope.
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        if operation:
            message = (
                f"Permission denied for {operation}. "
                "Your token needs 'vso.work' scope for this operation."
            )
        else:
            message = "Permission denied. Please check your token scopes and project permissions."

        super().__init__(
            message=message,
            status_code=403,
            original_error=original_error,
            details={'operation': operation}
        )


class RateLimitError(AzureDevOpsError):
    """
    Raised when API rate limit is exceeded (HTTP 429).

    Requests are not retried; the run fails and can be started again later.
    """

    def __init__(
        self,
        retry_after: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        if retry_after:
            message = f"Rate limit exceeded. Please retry after {retry_after} seconds."
        else:
            message = "Rate limit exceeded. Please retry after a brief delay."

        super().__init__(
            message=message,
            status_code=429,
            original_error=original_error,
            details={'retry_after': retry_after}
        )
        self.retry_after = retry_after


class TransientError(AzureDevOpsError):
    """
    Raised for temporary service errors (HTTP 500, 502, 503, 504).
    """

    def __init__(
        self,
        status_code: int,
        original_error: Optional[Exception] = None
    ):
        message = (
            f"Azure DevOps service temporarily unavailable (HTTP {status_code}). "
            "Please run the report again later."
        )

        super().__init__(
            message=message,
            status_code=status_code,
            original_error=original_error
        )


class BadRequestError(AzureDevOpsError):
    """
    Raised for malformed requests (HTTP 400).

    This can occur when:
    - Invalid WIQL syntax
    - An iteration path that does not exist in the project
    """

    def __init__(
        self,
        message: str = "Bad request. Please check the configured project, team and iteration.",
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        super().__init__(
            message=message,
            status_code=400,
            original_error=original_error,
            details=details
        )


class TimeoutError(AzureDevOpsError):
    """
    Raised when a request exceeds the configured request timeout.
    """

    def __init__(
        self,
        timeout_seconds: float = 30,
        original_error: Optional[Exception] = None
    ):
        message = (
            f"Request timeout after {timeout_seconds} seconds. "
            "Azure DevOps may be experiencing issues or the query is too complex."
        )

        super().__init__(
            message=message,
            status_code=408,
            original_error=original_error,
            details={'timeout_seconds': timeout_seconds}
        )


def map_status_code_to_error(
    status_code: int,
    original_error: Optional[Exception] = None,
    **kwargs
) -> AzureDevOpsError:
    """
    Map HTTP status code to appropriate error class.

    Args:
        status_code: HTTP status code from Azure DevOps API
        original_error: The original exception
        **kwargs: Additional error-specific parameters

    Returns:
        Appropriate AzureDevOpsError subclass instance
    """
    if status_code == 400:
        return BadRequestError(original_error=original_error)
    elif status_code == 401:
        return AuthenticationError(original_error=original_error)
    elif status_code == 403:
        return PermissionDeniedError(original_error=original_error, operation=kwargs.get('operation'))
    elif status_code == 404:
        return NotFoundError(original_error=original_error, resource=kwargs.get('resource'))
    elif status_code == 408:
        return TimeoutError(original_error=original_error)
    elif status_code == 429:
        return RateLimitError(original_error=original_error, retry_after=kwargs.get('retry_after'))
    elif status_code in [500, 502, 503, 504]:
        return TransientError(status_code=status_code, original_error=original_error)
    else:
        return AzureDevOpsError(
            message=f"Azure DevOps API error: HTTP {status_code}",
            status_code=status_code,
            original_error=original_error
        )
