"""
Configuration module for the token aggregator.
Reads environment variables (and an optional .env file) into a Settings object.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from .constants.cache import DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)

# Upstream endpoints
DEXSCREENER_BASE_URL = "https://api.dexscreener.com"
JUPITER_BASE_URL = "https://lite-api.jup.ag"

# DexScreener allows 300 requests/min, keep a safety margin
DEXSCREENER_MAX_REQUESTS = 250

# RPC-style defaults shared by every upstream client
DEFAULT_TIMEOUT = 10.0  # seconds
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds

# Network the aggregator serves
TARGET_CHAIN_ID = "solana"
DEFAULT_QUERY = "SOL"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using default {default}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {value!r}, using default {default}")
        return default


def _allowed_origins(environment: str) -> List[str]:
    raw = os.getenv("ALLOWED_ORIGINS")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return [] if environment == "production" else ["*"]


@dataclass
class Settings:
    """Application settings."""
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    redis_url: str = "redis://localhost:6379"
    cache_ttl: int = DEFAULT_CACHE_TTL
    rate_limit_max_requests: int = 250
    rate_limit_window_ms: int = 60000
    http_timeout: float = DEFAULT_TIMEOUT
    ws_update_interval_ms: int = 5000
    cache_refresh_interval: float = 30.0
    default_query: str = DEFAULT_QUERY
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000.0

    @property
    def ws_update_interval_seconds(self) -> float:
        return self.ws_update_interval_ms / 1000.0

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """Load settings from the environment, after reading a .env file if present."""
        load_dotenv(dotenv_path)

        environment = os.getenv("ENVIRONMENT", "development")
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            environment=environment,
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            cache_ttl=_env_int("CACHE_TTL", DEFAULT_CACHE_TTL),
            rate_limit_max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 250),
            rate_limit_window_ms=_env_int("RATE_LIMIT_WINDOW_MS", 60000),
            http_timeout=_env_float("HTTP_TIMEOUT", DEFAULT_TIMEOUT),
            ws_update_interval_ms=_env_int("WS_UPDATE_INTERVAL", 5000),
            cache_refresh_interval=_env_float("CACHE_REFRESH_INTERVAL", 30.0),
            default_query=os.getenv("DEFAULT_QUERY", DEFAULT_QUERY),
            allowed_origins=_allowed_origins(environment),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR") or None,
        )
