"""HTTP long-poll delivery of change events."""

from __future__ import annotations

import asyncio
import base64
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Literal

from pydantic import BaseModel

from fsrelay.logging import get_logger
from fsrelay.watching.events import ChangeEvent, ChangeKind, OutboundItem, WatchError
from fsrelay.watching.session import WatchSession

log = get_logger("poll")

# e.g. Request.is_disconnected
DisconnectCheck = Callable[[], Awaitable[bool]]

# How often a waiting poll checks whether its client is still there
_DISCONNECT_CHECK_INTERVAL = 0.1


class PolledEvent(BaseModel):
    """One record in a GET /poll response."""

    kind: Literal["create", "update", "delete", "error"]
    path: str | None = None
    content: str | None = None
    encoding: Literal["utf-8", "base64"] | None = None
    message: str | None = None

    @classmethod
    def from_item(cls, item: OutboundItem) -> PolledEvent:
        if isinstance(item, WatchError):
            return cls(kind="error", message=item.message)
        if item.kind is ChangeKind.DELETE:
            return cls(kind="delete", path=item.path)
        content, encoding = _encode_content(item)
        return cls(kind=item.kind.value, path=item.path, content=content, encoding=encoding)


def _encode_content(event: ChangeEvent) -> tuple[str, Literal["utf-8", "base64"]]:
    try:
        return event.content.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return base64.b64encode(event.content).decode("ascii"), "base64"

class EventPoller:
    """Drains a process-lifetime WatchSession on behalf of pollers.

    Concurrent polls are served one at a time so no event is split
    between two responses. Items taken off the queue for a poller that
    has since disconnected are held and delivered to the next poll.
    """

    def __init__(self, session: WatchSession, timeout: float) -> None:
        self._session = session
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._held: deque[OutboundItem] = deque()

    @property
    def held(self) -> int:
        """Items waiting for a poller after their first one went away."""
        return len(self._held)

    async def poll(self, is_disconnected: DisconnectCheck | None = None) -> list[OutboundItem]:
        """Wait for at least one item, then return everything queued.

        Args:
            is_disconnected: Checked while waiting and again before
                returning; once it reports True the poll gives up and
                keeps whatever it took for the next poller.

        Returns:
            The items in order, or an empty list when the timeout elapses
            or the client goes away first.
        """
        async with self._lock:
            if not self._held and not await self._wait_first(is_disconnected):
                return []

            while True:
                try:
                    self._held.append(self._session.get_nowait())
                except asyncio.QueueEmpty:
                    break

            if is_disconnected is not None and await is_disconnected():
                log.debug("Poller left, holding %d events", len(self._held))
                return []

            items = list(self._held)
            self._held.clear()

        log.debug("Poll returning %d events", len(items))
        return items

    async def _wait_first(self, is_disconnected: DisconnectCheck | None) -> bool:
        """Move the next queued item into the held buffer.

        Returns False if the timeout elapsed or the client disconnected
        before an item arrived.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        getter = asyncio.ensure_future(self._session.get())
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return False
                done, _ = await asyncio.wait(
                    {getter}, timeout=min(remaining, _DISCONNECT_CHECK_INTERVAL)
                )
                if getter in done:
                    return True
                if is_disconnected is not None and await is_disconnected():
                    log.debug("Poller left before any event arrived")
                    return False
        finally:
            if not getter.done():
                getter.cancel()
                await asyncio.gather(getter, return_exceptions=True)
            if getter.done() and not getter.cancelled() and getter.exception() is None:
                self._held.append(getter.result())
