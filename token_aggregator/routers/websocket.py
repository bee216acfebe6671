"""
WebSocket endpoint streaming token updates.
"""
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.websocket_service import TokenStreamManager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def token_stream(websocket: WebSocket):
    manager: TokenStreamManager = websocket.app.state.stream
    await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"message": "Invalid JSON"}})
                continue
            await manager.handle_message(websocket, message)
    except WebSocketDisconnect:
        manager.disconnect(websocket)
