"""Full-duplex frame transport as seen by the relay loop."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """One peer connection with independent read and write sides.

    Implementations raise TransportClosed from ``send`` when the peer is
    gone and return None from ``receive`` at end of stream.
    """

    async def receive(self) -> bytes | None:
        """Next inbound frame, or None once the peer has closed."""
        ...

    async def send(self, frame: bytes) -> None:
        """Write one outbound frame."""
        ...


@runtime_checkable
class EventSource(Protocol):
    """Where outbound items come from (a WatchSession in production)."""

    async def get(self) -> object:
        ...
