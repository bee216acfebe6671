"""
Custom error types for upstream provider and cache operations.
"""
from typing import Optional

import httpx


class AggregatorError(Exception):
    """Base class for token aggregator errors."""
    pass


class UpstreamError(AggregatorError):
    """Raised when an upstream provider call fails."""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class RetryableUpstreamError(UpstreamError):
    """Upstream failure that is worth retrying (timeouts, 5xx, 429)."""
    pass


class CacheError(AggregatorError):
    """Raised when a cache value cannot be serialized or deserialized."""
    pass


def status_code_of(error: BaseException) -> Optional[int]:
    """Extract the HTTP status code carried by an error, if any."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, UpstreamError):
        return error.status_code
    return getattr(error, "status_code", None)


def is_retryable(error: BaseException) -> bool:
    """
    Client errors (4xx) are final, except 429 which signals rate pressure.
    Everything else - network failures, timeouts, 5xx - is retried.
    """
    status = status_code_of(error)
    if status is not None and 400 <= status < 500 and status != 429:
        return False
    return True


__all__ = [
    'AggregatorError',
    'UpstreamError',
    'RetryableUpstreamError',
    'CacheError',
    'status_code_of',
    'is_retryable',
]
