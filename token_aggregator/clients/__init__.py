"""
Upstream provider clients.
"""

from .base_client import BaseClient, RateLimitConfig
from .dexscreener_client import DexScreenerClient
from .jupiter_client import JupiterClient

__all__ = [
    'BaseClient',
    'RateLimitConfig',
    'DexScreenerClient',
    'JupiterClient',
]
