"""
DexScreener provider - the primary source of market data.

Uses the public DexScreener API (no authentication required):
  GET https://api.dexscreener.com/latest/dex/search?q={query}
  GET https://api.dexscreener.com/latest/dex/tokens/{address}
"""

import logging
import math
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..config import DEXSCREENER_BASE_URL, DEXSCREENER_MAX_REQUESTS, TARGET_CHAIN_ID
from ..models.token import Token
from .base_client import BaseClient, RateLimitConfig

logger = logging.getLogger(__name__)

DEXSCREENER_SOURCE = "dexscreener"

# Market cap estimate multiplier when the pair reports none
ESTIMATED_SUPPLY = 1_000_000


def _safe_get(d: Dict[str, Any], path: str, default: Any = None) -> Any:
    cur: Any = d
    for key in path.split("."):
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def _to_float(x: Any, default: float = 0.0) -> float:
    if x is None:
        return default
    try:
        value = float(x)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _to_int(x: Any, default: int = 0) -> int:
    if x is None:
        return default
    try:
        return int(x)
    except (TypeError, ValueError, OverflowError):
        return default


def _to_str(x: Any, default: str = "") -> str:
    return x if isinstance(x, str) else default


class DexScreenerClient(BaseClient):
    """Search and look up Solana tokens through DexScreener pairs."""

    provider_name = DEXSCREENER_SOURCE

    def __init__(self, rate_limit: Optional[RateLimitConfig] = None, **kwargs: Any):
        super().__init__(
            DEXSCREENER_BASE_URL,
            rate_limit=rate_limit or RateLimitConfig(max_requests=DEXSCREENER_MAX_REQUESTS),
            **kwargs,
        )

    async def search_tokens(self, query: str = "SOL") -> List[Token]:
        """
        Search pairs matching a query.

        Never raises: any upstream failure is logged and yields an empty list.
        """
        try:
            data = await self.get_json("/latest/dex/search", params={"q": query})
        except Exception as e:
            logger.error(f"DexScreener API error: {str(e)}")
            return []

        return self.transform_pairs(_pairs_of(data))

    async def get_token_by_address(self, address: str) -> Optional[Token]:
        """
        Fetch the first Solana pair for a token address.

        Never raises: any upstream failure is logged and yields None.
        """
        try:
            data = await self.get_json(f"/latest/dex/tokens/{address}")
        except Exception as e:
            logger.error(f"DexScreener token fetch error for {address}: {str(e)}")
            return None

        tokens = self.transform_pairs(_pairs_of(data))
        return tokens[0] if tokens else None

    def transform_pairs(self, pairs: List[Dict[str, Any]]) -> List[Token]:
        """Convert raw pair dicts into tokens, keeping only pairs on the target chain.

        Pairs that still fail validation are logged and skipped.
        """
        now_ms = int(time.time() * 1000)
        tokens = []
        for pair in pairs:
            if not isinstance(pair, dict) or pair.get("chainId") != TARGET_CHAIN_ID:
                continue
            address = _to_str(_safe_get(pair, "baseToken.address"))
            if not address:
                continue
            try:
                tokens.append(self._transform_pair(pair, address, now_ms))
            except ValidationError as e:
                logger.warning(f"Skipping malformed DexScreener pair for {address}: {str(e)}")
        return tokens

    def _transform_pair(self, pair: Dict[str, Any], address: str, now_ms: int) -> Token:
        price_native = max(0.0, _to_float(pair.get("priceNative")))
        price_usd = _to_float(pair.get("priceUsd"))
        # USD figures are converted through the USD price; fall back to a divisor of 1
        divisor = price_usd if price_usd > 0 else 1.0

        volume_usd = _to_float(_safe_get(pair, "volume.h24"))
        market_cap_usd = _to_float(pair.get("marketCap"))

        if market_cap_usd:
            market_cap = market_cap_usd / divisor
        else:
            market_cap = price_native * ESTIMATED_SUPPLY

        buys = _to_int(_safe_get(pair, "txns.h24.buys"))
        sells = _to_int(_safe_get(pair, "txns.h24.sells"))

        return Token(
            address=address,
            name=_to_str(_safe_get(pair, "baseToken.name")),
            ticker=_to_str(_safe_get(pair, "baseToken.symbol")),
            price_in_base_unit=price_native,
            market_cap_in_base_unit=max(0.0, market_cap),
            volume_in_base_unit=max(0.0, volume_usd / divisor),
            liquidity_in_base_unit=max(0.0, _to_float(_safe_get(pair, "liquidity.quote"))),
            transaction_count=max(0, buys + sells),
            price_change_1h_pct=_to_float(_safe_get(pair, "priceChange.h1")),
            protocol=_to_str(pair.get("dexId")),
            source=DEXSCREENER_SOURCE,
            updated_at=now_ms,
        )


def _pairs_of(data: Any) -> List[Dict[str, Any]]:
    pairs = data.get("pairs") if isinstance(data, dict) else None
    return pairs if isinstance(pairs, list) else []
