"""WebSocket fan-out for case and request lifecycle events."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from triagedesk.common.logging import get_logger

logger = get_logger("ws.manager")

ALL_PLAYERS = "*"


class ConnectionManager:
    """WebSocket connections grouped by the player they follow (``*`` follows everyone)."""

    def __init__(self):
        self._connections: dict[str, dict[str, WebSocket]] = {}

    async def connect(self, websocket: WebSocket, player_id: str | None = None) -> tuple[str, str]:
        await websocket.accept()
        key = player_id or ALL_PLAYERS
        conn_id = uuid.uuid4().hex[:12]
        self._connections.setdefault(key, {})[conn_id] = websocket
        logger.info("WS connected: player=%s conn=%s (%d total)", key, conn_id, self.active_connections)
        return key, conn_id

    def disconnect(self, key: str, conn_id: str) -> None:
        if key in self._connections:
            self._connections[key].pop(conn_id, None)
            if not self._connections[key]:
                del self._connections[key]
        logger.info("WS disconnected: player=%s conn=%s", key, conn_id)

    async def _send(self, key: str, message: dict[str, Any]) -> None:
        dead = []
        for conn_id, ws in list(self._connections.get(key, {}).items()):
            try:
                if ws.client_state == WebSocketState.CONNECTED:
                    await ws.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug("Dropping WS conn %s: %s", conn_id, e)
                dead.append(conn_id)
        for conn_id in dead:
            self.disconnect(key, conn_id)

    async def handle_event(self, event: str, data: dict[str, Any]) -> None:
        """Event hook subscriber: push to followers of the player and to ``*``."""
        message = {
            "event": event,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        await self._send(ALL_PLAYERS, message)
        player_id = data.get("player_id")
        if player_id and player_id != ALL_PLAYERS:
            await self._send(player_id, message)

    @property
    def active_connections(self) -> int:
        return sum(len(conns) for conns in self._connections.values())


manager = ConnectionManager()
