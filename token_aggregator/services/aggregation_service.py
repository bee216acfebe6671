"""
Aggregation engine: fans out to the token providers, merges their results by
address and serves sorted, paginated views over the merged collection.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from ..clients.dexscreener_client import DEXSCREENER_SOURCE
from ..config import DEFAULT_QUERY
from ..constants.cache import CACHE_KEY_ALL_TOKENS, token_cache_key
from ..metrics import aggregation_duration, cache_lookups
from ..models.token import PaginatedResponse, Token, TokenFilter
from .cache_service import CacheService

logger = logging.getLogger(__name__)

# Sort field -> Token attribute
SORT_ATTRIBUTES = {
    "volume": "volume_in_base_unit",
    "price_change": "price_change_1h_pct",
    "market_cap": "market_cap_in_base_unit",
    "liquidity": "liquidity_in_base_unit",
}


class TokenProvider(Protocol):
    provider_name: str

    async def search_tokens(self, query: str = DEFAULT_QUERY) -> List[Token]:
        ...


def merge_tokens(tokens: Iterable[Token], primary_source: str = DEXSCREENER_SOURCE) -> List[Token]:
    """
    Merge token records that share an address.

    Volume and transaction count are summed, liquidity takes the maximum and
    updated_at the latest timestamp. Every other field comes from the primary
    source whenever it contributed a record, regardless of input order.

    Args:
        tokens: Records from all providers, in fetch order
        primary_source: Source whose descriptive fields win conflicts

    Returns:
        List[Token]: One record per address, in first-seen order
    """
    merged: Dict[str, Token] = {}
    for token in tokens:
        existing = merged.get(token.address)
        if existing is None:
            merged[token.address] = token
            continue

        base = token if token.source == primary_source else existing
        merged[token.address] = base.model_copy(update={
            "volume_in_base_unit": existing.volume_in_base_unit + token.volume_in_base_unit,
            "liquidity_in_base_unit": max(existing.liquidity_in_base_unit, token.liquidity_in_base_unit),
            "transaction_count": existing.transaction_count + token.transaction_count,
            "updated_at": max(existing.updated_at or 0, token.updated_at or 0),
        })
    return list(merged.values())


def filter_and_sort(tokens: Sequence[Token], token_filter: Optional[TokenFilter] = None) -> List[Token]:
    """Return a sorted copy of tokens. Ties keep their input order."""
    result = list(tokens)
    if token_filter is None or token_filter.sort_by is None:
        return result

    attribute = SORT_ATTRIBUTES[token_filter.sort_by]
    return sorted(
        result,
        key=lambda token: getattr(token, attribute),
        reverse=token_filter.sort_order != "asc",
    )


def _cursor_offset(cursor: Optional[str]) -> int:
    if not cursor:
        return 0
    try:
        offset = int(cursor)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring invalid cursor {cursor!r}")
        return 0
    return max(0, offset)


def paginate(tokens: Sequence[Token], token_filter: Optional[TokenFilter] = None) -> PaginatedResponse:
    """Slice one page out of an already filtered and sorted collection."""
    token_filter = token_filter or TokenFilter()
    offset = _cursor_offset(token_filter.cursor)
    end = offset + token_filter.limit
    total = len(tokens)
    has_more = end < total

    return PaginatedResponse(
        data=list(tokens[offset:end]),
        next_cursor=str(end) if has_more else None,
        has_more=has_more,
        total=total,
    )


class AggregationService:
    """Cache-aside aggregation over a set of token providers."""

    def __init__(
        self,
        cache: CacheService,
        providers: Sequence[TokenProvider],
        primary_source: str = DEXSCREENER_SOURCE,
        default_query: str = DEFAULT_QUERY,
        cache_ttl: Optional[int] = None,
    ):
        self.cache = cache
        self.providers = list(providers)
        self.primary_source = primary_source
        self.default_query = default_query
        self.cache_ttl = cache_ttl

        primary = [p for p in self.providers if p.provider_name == primary_source]
        if not primary:
            raise ValueError(f"No provider registered for primary source {primary_source!r}")
        self.primary = primary[0]

    async def fetch_and_aggregate(self, query: Optional[str] = None, use_cache: bool = True) -> List[Token]:
        """
        Get the merged token collection.

        Serves the cached snapshot when allowed and present; otherwise queries
        every provider concurrently, merges the results and stores the new
        snapshot.
        """
        if use_cache:
            tokens = self._load_snapshot(await self.cache.get(CACHE_KEY_ALL_TOKENS))
            if tokens is not None:
                cache_lookups.labels(kind="aggregate", result="hit").inc()
                logger.info(f"Returning {len(tokens)} cached tokens")
                return tokens
            cache_lookups.labels(kind="aggregate", result="miss").inc()

        query = query or self.default_query
        with aggregation_duration.time():
            results = await asyncio.gather(
                *(provider.search_tokens(query) for provider in self.providers),
                return_exceptions=True,
            )

            all_tokens: List[Token] = []
            for provider, result in zip(self.providers, results):
                if isinstance(result, BaseException):
                    logger.error(f"Provider {provider.provider_name} failed: {str(result)}")
                    continue
                logger.debug(f"Provider {provider.provider_name} returned {len(result)} tokens")
                all_tokens.extend(result)

            merged = merge_tokens(all_tokens, self.primary_source)

        await self.cache.set(
            CACHE_KEY_ALL_TOKENS,
            [token.model_dump() for token in merged],
            self.cache_ttl,
        )
        logger.info(f"Aggregated {len(merged)} tokens from {len(all_tokens)} provider records")
        return merged

    def _load_snapshot(self, cached: Any) -> Optional[List[Token]]:
        if cached is None:
            return None
        if not isinstance(cached, list):
            logger.warning("Discarding cached token snapshot of unexpected shape")
            return None
        try:
            return [Token.model_validate(item) for item in cached]
        except ValidationError as e:
            logger.warning(f"Discarding invalid cached token snapshot: {str(e)}")
            return None

    async def get_tokens(self, token_filter: Optional[TokenFilter] = None) -> PaginatedResponse:
        """Get one sorted page of the merged token collection."""
        token_filter = token_filter or TokenFilter()
        tokens = await self.fetch_and_aggregate()
        return paginate(filter_and_sort(tokens, token_filter), token_filter)

    async def get_token_by_address(self, address: str) -> Optional[Token]:
        """Look up a single token, from cache or else from the primary provider only."""
        key = token_cache_key(address)
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                token = Token.model_validate(cached)
            except ValidationError as e:
                logger.warning(f"Discarding invalid cached token {address}: {str(e)}")
            else:
                cache_lookups.labels(kind="token", result="hit").inc()
                return token
        cache_lookups.labels(kind="token", result="miss").inc()

        token = await self.primary.get_token_by_address(address)
        if token is not None:
            await self.cache.set(key, token.model_dump(), self.cache_ttl)
        return token

    async def refresh_cache(self) -> List[Token]:
        """Re-fetch from every provider and overwrite the cached snapshot."""
        logger.info("Refreshing token cache")
        return await self.fetch_and_aggregate(use_cache=False)

    async def close(self) -> None:
        """Close every provider client."""
        for provider in self.providers:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
