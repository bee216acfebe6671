"""
HTTP and WebSocket routers.
"""

from .health import router as health_router
from .tokens import router as tokens_router
from .websocket import router as websocket_router

__all__ = ["health_router", "tokens_router", "websocket_router"]
