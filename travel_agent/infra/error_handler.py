"""Error types and classification for model endpoints and tool execution."""

import asyncio
from typing import Optional, Tuple
from enum import Enum

import httpx
import openai


class ErrorCategory(str, Enum):
    """Categories of errors for better handling."""
    NETWORK = "network"  # Connection issues, timeouts
    API_ERROR = "api_error"  # API returned error response
    AUTH_ERROR = "auth_error"  # Authentication/authorization failures
    RATE_LIMIT = "rate_limit"  # Rate limit exceeded
    VALIDATION = "validation"  # Input validation errors
    EMPTY_RESPONSE = "empty_response"  # Endpoint answered with no text
    UNKNOWN = "unknown"  # Unknown errors


class RetryableError(Exception):
    """Base exception carrying a category and a retryable flag."""
    def __init__(self, message: str, category: ErrorCategory, retryable: bool = True):
        self.message = message
        self.category = category
        self.retryable = retryable
        super().__init__(message)


class EndpointError(RetryableError):
    """A model endpoint attempt failed; the next endpoint should be tried."""
    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.API_ERROR, endpoint: Optional[str] = None):
        self.endpoint = endpoint
        super().__init__(message, category, retryable=True)


class ToolArgumentError(RetryableError):
    """A tool argument failed validation; the message is shown to the user as is."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.VALIDATION, retryable=False)


class ExternalToolError(RetryableError):
    """The external capability provider rejected or failed a tool call."""
    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.API_ERROR):
        super().__init__(message, category, retryable=False)


def classify_error(error: Exception) -> Tuple[ErrorCategory, bool]:
    """
    Classify an error into a category and determine if it's retryable.

    Args:
        error: The exception to classify

    Returns:
        Tuple of (category, retryable)
    """
    if isinstance(error, RetryableError):
        return error.category, error.retryable

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, openai.APITimeoutError, httpx.TimeoutException)):
        return ErrorCategory.NETWORK, True

    if isinstance(error, openai.RateLimitError):
        return ErrorCategory.RATE_LIMIT, True

    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorCategory.AUTH_ERROR, True

    if isinstance(error, (openai.APIConnectionError, httpx.TransportError, ConnectionError)):
        return ErrorCategory.NETWORK, True

    if isinstance(error, (openai.APIError, httpx.HTTPStatusError)):
        return ErrorCategory.API_ERROR, True

    error_str = str(error).lower()
    if any(keyword in error_str for keyword in ['connection', 'timeout', 'network', 'refused']):
        return ErrorCategory.NETWORK, True
    if 'rate limit' in error_str or '429' in error_str:
        return ErrorCategory.RATE_LIMIT, True

    return ErrorCategory.UNKNOWN, False
