"""
Base HTTP client shared by the upstream token providers.
Enforces a fixed-window request quota and retries transient failures with exponential backoff.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_TIMEOUT
from ..metrics import rate_limit_waits, upstream_requests
from ..utils.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RateLimitConfig:
    """Configuration for fixed-window rate limiting."""
    max_requests: int = 250  # Requests allowed per window
    window_seconds: float = 60.0  # Window length


class BaseClient:
    """
    Rate-limited, retrying HTTP client for one upstream provider.

    The request window is shared by every call made through this client, so a
    caller that hits the quota blocks all other calls to the same provider
    until the window rolls over. Callers are never rejected.
    """

    provider_name = "upstream"

    def __init__(
        self,
        base_url: str,
        rate_limit: Optional[RateLimitConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_RETRY_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            base_url: Provider API root
            rate_limit: Window quota, defaults to 250 requests per 60s
            timeout: Per-request timeout in seconds
            max_retries: Total attempts per request
            base_delay: First backoff delay in seconds, doubled on every retry
            transport: Optional httpx transport (used by tests)
            clock: Monotonic clock used for the request window
            sleep: Coroutine used for window waits and backoff delays
        """
        self.base_url = base_url
        self.rate_limit = rate_limit or RateLimitConfig()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._clock = clock
        self._sleep = sleep

        self.request_count = 0
        self.window_start = clock()
        self._lock = asyncio.Lock()

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def check_rate_limit(self) -> None:
        """Admit one request into the current window, waiting for the next window if it is full."""
        async with self._lock:
            now = self._clock()
            window = self.rate_limit.window_seconds

            if now - self.window_start >= window:
                self.request_count = 0
                self.window_start = now

            if self.request_count >= self.rate_limit.max_requests:
                wait_time = window - (now - self.window_start)
                logger.warning(f"{self.provider_name} rate limit hit, waiting {wait_time:.2f}s")
                rate_limit_waits.labels(provider=self.provider_name).inc()
                await self._sleep(wait_time)
                self.request_count = 0
                self.window_start = self._clock()

            self.request_count += 1

    async def retry_with_backoff(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> T:
        """Execute an operation, retrying transient failures with exponential backoff."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries if max_retries is None else max_retries),
            wait=wait_exponential(
                multiplier=self.base_delay if base_delay is None else base_delay,
                exp_base=2,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await operation()
        return result

    async def request(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an outbound call under this provider's rate limit and retry policy."""
        await self.check_rate_limit()
        try:
            result = await self.retry_with_backoff(operation)
        except Exception:
            upstream_requests.labels(provider=self.provider_name, outcome="error").inc()
            raise
        upstream_requests.labels(provider=self.provider_name, outcome="success").inc()
        return result

    async def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """GET a JSON document relative to the provider base URL."""
        async def operation() -> Any:
            logger.debug(f"GET {self.base_url}{path} params={params}")
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()

        return await self.request(operation)

    def get_stats(self) -> Dict[str, float]:
        """Get the current request window state."""
        return {
            "request_count": self.request_count,
            "max_requests": self.rate_limit.max_requests,
            "window_seconds": self.rate_limit.window_seconds,
            "window_elapsed": self._clock() - self.window_start,
        }

    async def close(self) -> None:
        """Release the underlying connection pool."""
        await self._client.aclose()
