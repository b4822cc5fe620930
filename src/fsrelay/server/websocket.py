"""WebSocket binding of the relay transport."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from fastapi import WebSocketDisconnect
from fastapi.websockets import WebSocketState

from fsrelay.errors import TransportClosed

if TYPE_CHECKING:
    from fastapi import WebSocket

log = logging.getLogger(__name__)


class WebSocketTransport:
    """Adapts a Starlette WebSocket to the relay's Transport protocol.

    Binary and text messages are both accepted inbound (text is taken as
    UTF-8); outbound frames are always sent as binary messages.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def receive(self) -> bytes | None:
        try:
            message = await self._websocket.receive()
        except (WebSocketDisconnect, RuntimeError) as e:
            log.debug("Receive ended: %s", e)
            return None

        if message["type"] == "websocket.disconnect":
            return None

        data = message.get("bytes")
        if data is None:
            data = (message.get("text") or "").encode("utf-8")
        return data

    async def send(self, frame: bytes) -> None:
        try:
            await self._websocket.send_bytes(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise TransportClosed(str(e)) from e

    async def close(self) -> None:
        """Close our side if the peer has not already gone."""
        websocket = self._websocket
        if (
            websocket.client_state is WebSocketState.DISCONNECTED
            or websocket.application_state is WebSocketState.DISCONNECTED
        ):
            return
        with contextlib.suppress(RuntimeError, OSError):
            await websocket.close()
