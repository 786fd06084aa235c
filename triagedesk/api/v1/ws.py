from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from triagedesk.api.ws import manager
from triagedesk.common.logging import get_logger

router = APIRouter(tags=["WebSocket"])

logger = get_logger("ws")


@router.websocket("/ws/events")
async def events_endpoint(ws: WebSocket):
    """Stream lifecycle events; ``?player_id=`` narrows the stream to one player."""
    key, conn_id = await manager.connect(ws, ws.query_params.get("player_id"))
    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        manager.disconnect(key, conn_id)
