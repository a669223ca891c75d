"""
Shared kernel for Imagify.

Provides:
- Unified exception hierarchy
- Async utilities for concurrent provider calls
"""

from .async_utils import CircuitBreaker, gather_with_errors
from .exceptions import (
    AllSourcesFailedError,
    APIError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    ImagifyError,
    InvalidParameterError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
    get_retry_delay,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "ImagifyError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "APIError",
    "RateLimitError",
    "NetworkError",
    "ServiceUnavailableError",
    "AllSourcesFailedError",
    "ValidationError",
    "InvalidParameterError",
    "DataError",
    "ParseError",
    "ConfigurationError",
    "is_retryable_error",
    "get_retry_delay",
    # Async utilities
    "gather_with_errors",
    "CircuitBreaker",
]
