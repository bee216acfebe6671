"""
Services package: cache, aggregation engine, push channel and background jobs.
"""

from .aggregation_service import AggregationService, filter_and_sort, merge_tokens, paginate
from .cache_service import CacheService
from .scheduler import TokenUpdateScheduler
from .websocket_service import TokenStreamManager

__all__ = [
    "AggregationService",
    "CacheService",
    "TokenStreamManager",
    "TokenUpdateScheduler",
    "filter_and_sort",
    "merge_tokens",
    "paginate",
]
