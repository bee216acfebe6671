"""
Token Aggregator - merged Solana token market data from multiple DEX providers.
"""

__version__ = "0.1.0"
