"""Per-connection relay loop.

The loop is the single owner of a connection's transport. It waits on two
sources at once, the next outbound item from the watch session and the
next inbound frame from the peer, and handles whichever is ready. When
both are ready in the same turn both are handled, so a busy source can
never starve the other.

State machine:
    IDLE -> ACTIVE -> CLOSED

CLOSED is terminal; a new connection gets a new RelayLoop.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from fsrelay.errors import (
    InvalidPath,
    IOFailure,
    NoNewlineToSeparatePath,
    ProtocolError,
    TransportClosed,
)
from fsrelay.logging import get_logger
from fsrelay.relay.transport import EventSource, Transport
from fsrelay.sync.paths import PathResolver
from fsrelay.transport.wire.codec import decode_write_request, encode_error, encode_outbound
from fsrelay.watching.events import OutboundItem, WatchError

log = get_logger("relay")


class RelayState(str, Enum):
    """Lifecycle of a relay loop."""

    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class RelayStats:
    """Counters for one connection."""

    frames_sent: int = 0
    writes_applied: int = 0
    requests_rejected: int = 0


class RelayLoop:
    """Merges a connection's outbound events and inbound write requests.

    Example:
        async with WatchSession(root) as session:
            loop = RelayLoop(transport, session, PathResolver(root))
            await loop.run()
    """

    def __init__(
        self,
        transport: Transport,
        events: EventSource,
        resolver: PathResolver,
        *,
        peer: str = "peer",
    ) -> None:
        self._transport = transport
        self._events = events
        self._resolver = resolver
        self._peer = peer
        self._state = RelayState.IDLE
        self.stats = RelayStats()

    @property
    def state(self) -> RelayState:
        return self._state

    async def run(self) -> RelayStats:
        """Relay until the peer disconnects or the transport fails.

        Returns:
            Counters for the finished connection.

        Raises:
            RuntimeError: If this loop already ran.
        """
        if self._state is not RelayState.IDLE:
            raise RuntimeError(f"RelayLoop for {self._peer} already {self._state.value}")

        self._state = RelayState.ACTIVE
        log.info("Relay active for %s", self._peer)

        outbound: asyncio.Future[OutboundItem] = asyncio.ensure_future(self._events.get())
        inbound: asyncio.Future[bytes | None] = asyncio.ensure_future(self._transport.receive())
        try:
            while self._state is RelayState.ACTIVE:
                done, _ = await asyncio.wait(
                    {outbound, inbound}, return_when=asyncio.FIRST_COMPLETED
                )

                if outbound in done:
                    await self._handle_outbound(outbound.result())
                    outbound = asyncio.ensure_future(self._events.get())

                if inbound in done and self._state is RelayState.ACTIVE:
                    await self._handle_inbound(inbound)
                    if self._state is RelayState.ACTIVE:
                        inbound = asyncio.ensure_future(self._transport.receive())
        finally:
            self._close("relay stopped")
            for waiter in (outbound, inbound):
                if not waiter.done():
                    waiter.cancel()
            await asyncio.gather(outbound, inbound, return_exceptions=True)

        log.info(
            "Relay closed for %s (%d frames sent, %d writes applied, %d rejected)",
            self._peer,
            self.stats.frames_sent,
            self.stats.writes_applied,
            self.stats.requests_rejected,
        )
        return self.stats

    async def _handle_outbound(self, item: OutboundItem) -> None:
        """Send one outbound item to the peer.

        An event whose path cannot be framed (it contains a newline) is
        replaced by an ``eProtocolError: ...`` frame and the connection
        stays ACTIVE; later events for other paths are still delivered.
        """
        if isinstance(item, WatchError):
            log.warning("Watch failure for %s: %s", self._peer, item.message)

        try:
            frame = encode_outbound(item)
        except ProtocolError as e:
            log.error("Cannot encode outbound event: %s", e)
            frame = encode_error(e.describe())

        await self._send(frame)

    async def _handle_inbound(self, received: asyncio.Future[bytes | None]) -> None:
        try:
            frame = received.result()
        except TransportClosed:
            self._close("transport failed")
            return

        if frame is None:
            self._close("peer disconnected")
            return

        try:
            request = decode_write_request(frame)
            path = await asyncio.to_thread(self._resolver.write, request)
        except (NoNewlineToSeparatePath, InvalidPath, IOFailure) as e:
            self.stats.requests_rejected += 1
            log.warning("Rejected write from %s: %s", self._peer, e.describe())
            await self._send(encode_error(e.describe()))
            return

        self.stats.writes_applied += 1
        log.debug("Applied write from %s to %s", self._peer, path)

    async def _send(self, frame: bytes) -> None:
        if self._state is not RelayState.ACTIVE:
            return
        try:
            await self._transport.send(frame)
        except TransportClosed:
            self._close("send failed")
            return
        self.stats.frames_sent += 1

    def _close(self, reason: str) -> None:
        if self._state is RelayState.CLOSED:
            return
        self._state = RelayState.CLOSED
        log.debug("Relay for %s closing: %s", self._peer, reason)
