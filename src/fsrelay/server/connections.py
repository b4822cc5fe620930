"""Tracking of live peer connections."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket

log = logging.getLogger(__name__)


class ConnectionManager:
    """Keeps the set of connected peers so the server can report and close them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        log.debug("Peer connected (%d active)", len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        """Forget a connection."""
        async with self._lock:
            self._connections.discard(websocket)
        log.debug("Peer disconnected (%d active)", len(self._connections))

    def get_connection_count(self) -> int:
        return len(self._connections)

    async def close_all(self, reason: str = "Server shutting down") -> None:
        """Close all WebSocket connections gracefully."""
        async with self._lock:
            connections = list(self._connections)
            self._connections.clear()

        for websocket in connections:
            with contextlib.suppress(Exception):
                await websocket.close(code=1001, reason=reason)
        if connections:
            log.info("Closed %d peer connections", len(connections))
