"""
FastAPI application main module.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from . import __version__
from .clients.base_client import RateLimitConfig
from .clients.dexscreener_client import DexScreenerClient
from .clients.jupiter_client import JupiterClient
from .config import DEXSCREENER_MAX_REQUESTS, Settings
from .routers import health_router, tokens_router, websocket_router
from .services.aggregation_service import AggregationService
from .services.cache_service import CacheService
from .services.scheduler import TokenUpdateScheduler
from .services.websocket_service import TokenStreamManager
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_aggregation_service(settings: Settings, cache: CacheService) -> AggregationService:
    """Create both provider clients and the engine over them."""
    dexscreener = DexScreenerClient(
        rate_limit=RateLimitConfig(
            max_requests=DEXSCREENER_MAX_REQUESTS,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        timeout=settings.http_timeout,
    )
    jupiter = JupiterClient(
        rate_limit=RateLimitConfig(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        timeout=settings.http_timeout,
    )
    return AggregationService(
        cache,
        [dexscreener, jupiter],
        default_query=settings.default_query,
        cache_ttl=settings.cache_ttl,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    cache: Optional[CacheService] = None,
    aggregation: Optional[AggregationService] = None,
    start_background: bool = True,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Application settings, read from the environment when omitted
        cache: Cache to use instead of connecting to settings.redis_url
        aggregation: Engine to use instead of building real provider clients
        start_background: Whether the lifespan starts the refresh and push jobs

    Returns:
        FastAPI: Configured application
    """
    settings = settings or Settings.from_env()
    setup_logging("token_aggregator", settings.log_level, settings.log_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up application...")
        app.state.started_at = time.time()

        if cache is not None:
            cache_service = cache
        elif aggregation is not None:
            cache_service = aggregation.cache
        else:
            cache_service = CacheService(settings.redis_url, settings.cache_ttl)
        if not await cache_service.open():
            logger.warning("Continuing without cache")

        owns_aggregation = aggregation is None
        service = aggregation or build_aggregation_service(settings, cache_service)
        stream = TokenStreamManager(service)
        scheduler = TokenUpdateScheduler(
            service,
            stream,
            refresh_interval=settings.cache_refresh_interval,
            broadcast_interval=settings.ws_update_interval_seconds,
        )

        app.state.settings = settings
        app.state.cache = cache_service
        app.state.aggregation = service
        app.state.stream = stream
        app.state.scheduler = scheduler

        if start_background:
            scheduler.start()

        try:
            yield
        finally:
            scheduler.shutdown()
            if owns_aggregation:
                await service.close()
            await cache_service.close()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title="Token Aggregator API",
        description="Merged Solana token market data from DexScreener and Jupiter.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {str(exc)}")
        logger.exception(exc)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    app.mount("/metrics", make_asgi_app())

    api_router = APIRouter(prefix="/api")
    api_router.include_router(health_router)
    api_router.include_router(tokens_router)
    app.include_router(api_router)
    app.include_router(websocket_router)

    @app.get("/")
    async def root():
        return {
            "name": "Token Aggregator API",
            "version": __version__,
            "endpoints": {
                "health": "/api/health",
                "tokens": "/api/tokens",
                "token": "/api/tokens/{address}",
                "refresh": "/api/tokens/refresh",
                "websocket": "/ws",
                "metrics": "/metrics",
            },
        }

    return app
