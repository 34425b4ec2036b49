"""
WebSocket Connection Manager

Tracks the open chat sockets of one gateway instance. The container owns
the single instance, so every app built from a container sees only its
own connections.
"""

import asyncio
import logging
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Tracks open chat sockets and serializes sends per socket.

    The heartbeat task and the chat task both write to the same socket, so
    every send goes through the session's lock.
    """

    def __init__(self) -> None:
        # session_id -> WebSocket connection
        self.active_connections: dict[str, WebSocket] = {}
        # session_id -> send lock
        self._send_locks: dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self.active_connections[session_id] = websocket
            self._send_locks[session_id] = asyncio.Lock()
        logger.info(
            f"[WS] Session {session_id[:8]}... connected. "
            f"Total: {len(self.active_connections)}"
        )

    async def disconnect(self, session_id: str) -> None:
        async with self._lock:
            self.active_connections.pop(session_id, None)
            self._send_locks.pop(session_id, None)
        logger.info(
            f"[WS] Session {session_id[:8]}... disconnected. "
            f"Total: {len(self.active_connections)}"
        )

    def is_connected(self, session_id: str) -> bool:
        return session_id in self.active_connections

    async def send(self, session_id: str, payload: dict[str, Any]) -> bool:
        """Send one JSON frame. Returns False when the session is gone."""
        websocket = self.active_connections.get(session_id)
        lock = self._send_locks.get(session_id)
        if websocket is None or lock is None:
            return False
        try:
            async with lock:
                await websocket.send_text(orjson.dumps(payload).decode())
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"[WS] Send to {session_id[:8]}... failed: {e}")
            return False
        return True
