"""
WebSocket push channel for live token updates.

Messages in both directions are JSON objects of the form
{"event": <name>, "data": <payload>}.
"""

import logging
import time
from typing import Any, Dict, Set

from fastapi import WebSocket
from pydantic import ValidationError

from ..models.token import TokenFilter
from .aggregation_service import AggregationService

logger = logging.getLogger(__name__)

# Page size pushed on connect and on every periodic broadcast
PUSH_PAGE_LIMIT = 30


class TokenStreamManager:
    """Tracks connected clients and their per-address subscriptions."""

    def __init__(self, aggregation: AggregationService):
        self.aggregation = aggregation
        self.active_connections: Set[WebSocket] = set()
        self.rooms: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a client and send it the current default page."""
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info(f"Client connected ({len(self.active_connections)} active)")

        try:
            payload = await self._tokens_payload(TokenFilter(limit=PUSH_PAGE_LIMIT))
        except Exception as e:
            logger.error(f"Error sending token updates: {str(e)}")
            return
        await self._send(websocket, payload)

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.discard(websocket)
        for address in list(self.rooms):
            self.rooms[address].discard(websocket)
            if not self.rooms[address]:
                del self.rooms[address]
        logger.info(f"Client disconnected ({len(self.active_connections)} active)")

    async def handle_message(self, websocket: WebSocket, message: Any) -> None:
        """Dispatch one client message."""
        if not isinstance(message, dict):
            await self._send(websocket, _error("Messages must be JSON objects"))
            return

        event = message.get("event")
        data = message.get("data")

        if event == "filter":
            try:
                token_filter = TokenFilter.model_validate(data or {})
            except ValidationError as e:
                await self._send(websocket, _error(f"Invalid filter: {e.error_count()} error(s)"))
                return
            logger.info(f"Filter request: {token_filter.model_dump(exclude_none=True)}")
            await self._send(websocket, await self._tokens_payload(token_filter))
        elif event == "subscribe":
            if not isinstance(data, str) or not data:
                await self._send(websocket, _error("subscribe expects a token address"))
                return
            self.rooms.setdefault(data, set()).add(websocket)
            logger.info(f"Client subscribed to {data}")
        elif event == "unsubscribe":
            if not isinstance(data, str) or not data:
                await self._send(websocket, _error("unsubscribe expects a token address"))
                return
            members = self.rooms.get(data)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self.rooms[data]
            logger.info(f"Client unsubscribed from {data}")
        else:
            await self._send(websocket, _error(f"Unknown event: {event}"))

    async def broadcast_tokens(self) -> None:
        """Push the default page to every connected client."""
        if not self.active_connections:
            return
        try:
            payload = await self._tokens_payload(TokenFilter(limit=PUSH_PAGE_LIMIT))
        except Exception as e:
            logger.error(f"Error sending token updates: {str(e)}")
            return
        for websocket in list(self.active_connections):
            await self._send(websocket, payload)

    async def broadcast_price_update(self, address: str, price: float) -> None:
        """Notify subscribers of one token about a new price."""
        members = self.rooms.get(address)
        if not members:
            return
        payload = {
            "event": "price_update",
            "data": {
                "address": address,
                "price_in_base_unit": price,
                "timestamp": int(time.time() * 1000),
            },
        }
        for websocket in list(members):
            await self._send(websocket, payload)

    async def _tokens_payload(self, token_filter: TokenFilter) -> Dict[str, Any]:
        page = await self.aggregation.get_tokens(token_filter)
        return {"event": "tokens", "data": page.model_dump(mode="json")}

    async def _send(self, websocket: WebSocket, payload: Dict[str, Any]) -> bool:
        try:
            await websocket.send_json(payload)
        except Exception as e:
            # The socket is gone; forget it so later broadcasts skip it
            logger.warning(f"Dropping client after send failure: {str(e)}")
            self.disconnect(websocket)
            return False
        return True


def _error(message: str) -> Dict[str, Any]:
    return {"event": "error", "data": {"message": message}}
