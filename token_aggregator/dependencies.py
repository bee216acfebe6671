"""
FastAPI dependencies resolving the services wired onto app.state.
"""
from fastapi import Request

from .services.aggregation_service import AggregationService
from .services.cache_service import CacheService


def get_aggregation_service(request: Request) -> AggregationService:
    return request.app.state.aggregation


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache
