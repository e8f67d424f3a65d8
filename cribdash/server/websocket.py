"""
WebSocket connection manager for the live dashboard.

Manages active WebSocket connections and broadcasts draw commands to all clients.
"""

import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import WebSocket

logger = logging.getLogger("cribdash.websocket")


class ConnectionManager:
    """Manages WebSocket connections of dashboard viewers."""

    def __init__(self):
        self.active_connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, greeting: Dict[str, Any] = None):
        """Accept and register a new WebSocket connection, optionally greeting it."""
        await websocket.accept()
        if greeting is not None:
            await websocket.send_text(json.dumps(greeting, default=str))
        async with self._lock:
            self.active_connections.add(websocket)

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self.active_connections.discard(websocket)

    async def broadcast(self, message: Dict[str, Any]):
        """Send a message to all connected clients."""
        if not self.active_connections:
            return

        data = json.dumps(message, default=str)
        disconnected = set()

        async with self._lock:
            for ws in self.active_connections:
                try:
                    await ws.send_text(data)
                except Exception:
                    disconnected.add(ws)

            if disconnected:
                logger.debug("Dropping %d dead connection(s)", len(disconnected))
            self.active_connections -= disconnected

    @property
    def connection_count(self) -> int:
        return len(self.active_connections)
