"""
Log sanitization utilities to prevent credential leakage.

The personal access token travels in a Basic authorization header and in
the process environment; SDK exceptions occasionally echo request details.
Anything printed to the console or logs from an exception goes through here.
"""

import re


# Patterns that might indicate sensitive data
SENSITIVE_PATTERNS = [
    (re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(pat["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(basic\s+)([a-zA-Z0-9+/]+=*)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(bearer\s+)([a-zA-Z0-9\-._~+/]+=*)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(authorization["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
]


def sanitize_log_message(message: str) -> str:
    """
    Sanitize a log message by redacting sensitive information.

    Args:
        message: The log message to sanitize

    Returns:
        Sanitized log message with sensitive data redacted
    """
    if not message:
        return message

    sanitized = message
    for pattern, replacement in SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)

    return sanitized


def sanitize_error(error: Exception) -> str:
    """Sanitize an exception message for safe logging."""
    return sanitize_log_message(str(error))


def safe_log_error(error: Exception, context: str = "") -> str:
    """
    Create a safe error message for logging.

    This combines the context with the sanitized error message.

    Args:
        error: The exception
        context: Additional context (e.g., "Current sprint lookup failed")

    Returns:
        Safe error message for logging
    """
    sanitized_error = sanitize_error(error)
    error_type = type(error).__name__

    if context:
        return f"{context}: {error_type}: {sanitized_error}"
    return f"{error_type}: {sanitized_error}"
