"""
Pytest configuration and shared fixtures for the token aggregator tests.
"""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from token_aggregator.models.token import Token
from token_aggregator.services.cache_service import CacheService


# Register the asyncio marker
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio coroutine"
    )


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis covering the commands the cache uses."""

    def __init__(self, fail: bool = False):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = fail
        self.closed = False
        self.pings = 0

    def _check(self):
        if self.fail:
            raise RedisConnectionError("Connection refused")

    async def ping(self):
        self.pings += 1
        self._check()
        return True

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def flushdb(self):
        self._check()
        self.store.clear()
        self.ttls.clear()
        return True

    async def aclose(self):
        self.closed = True


class FakeClock:
    """Manually advanced monotonic clock with a matching sleep coroutine."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


def make_token(address: str = "addr1", source: Optional[str] = "dexscreener", **overrides) -> Token:
    """Build a token with sensible defaults."""
    fields = dict(
        address=address,
        name=f"Token {address}",
        ticker=address[:4].upper(),
        price_in_base_unit=0.001,
        market_cap_in_base_unit=1000.0,
        volume_in_base_unit=100.0,
        liquidity_in_base_unit=50.0,
        transaction_count=10,
        price_change_1h_pct=1.5,
        protocol="raydium",
        source=source,
        updated_at=1_700_000_000_000,
    )
    fields.update(overrides)
    return Token(**fields)


def make_provider(provider_name: str, tokens: Optional[List[Token]] = None, error: Optional[Exception] = None,
                  lookup: Optional[Token] = None):
    """Build a provider double exposing AsyncMock search/lookup/close methods."""
    provider = AsyncMock()
    provider.provider_name = provider_name
    if error is not None:
        provider.search_tokens = AsyncMock(side_effect=error)
    else:
        provider.search_tokens = AsyncMock(return_value=list(tokens or []))
    provider.get_token_by_address = AsyncMock(return_value=lookup)
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    """Cache backed by the in-memory Redis double. Call open() before use."""
    return CacheService("redis://test:6379", default_ttl=30, client=fake_redis)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def provider_factory():
    return make_provider
