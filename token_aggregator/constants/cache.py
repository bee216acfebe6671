"""
Cache key and TTL constants for the application.
These values determine how long aggregated data is served from Redis before being refreshed.
"""

# Aggregate snapshot of every merged token
CACHE_KEY_ALL_TOKENS = "tokens:all"

# Single-token lookups are cached as token:<address>
CACHE_KEY_TOKEN_PREFIX = "token:"

# General cache TTL constants (in seconds)
DEFAULT_CACHE_TTL = 30

# Seconds to wait before re-pinging an unreachable Redis
CACHE_RECONNECT_INTERVAL = 5.0


def token_cache_key(address: str) -> str:
    return f"{CACHE_KEY_TOKEN_PREFIX}{address}"
