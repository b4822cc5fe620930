"""Watch registration lifetime and the watcher-to-relay hand-off.

A WatchSession owns one recursive watchdog watch on a root directory and
a bounded asyncio queue. The observer thread normalizes notifications and
publishes them into the queue, blocking while the queue is full so a slow
consumer applies backpressure instead of losing events. Closing the
session is the consumer's way of telling the producer to stop; a publish
after close is simply refused.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import ClassVar

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from fsrelay.errors import WatchFailure
from fsrelay.logging import get_logger
from fsrelay.watching.events import OutboundItem, RawNotification, WatchError
from fsrelay.watching.normalizer import ChangeEventNormalizer

log = get_logger("watching")

DEFAULT_QUEUE_SIZE = 256

# How often a producer blocked on a full queue re-checks for close
_PUBLISH_POLL_INTERVAL = 0.05


class _SessionHandler(FileSystemEventHandler):
    """watchdog callback that feeds one WatchSession."""

    def __init__(self, session: WatchSession) -> None:
        super().__init__()
        self._session = session

    def on_any_event(self, event: FileSystemEvent) -> None:
        session = self._session
        raw = RawNotification.from_watchdog(event)

        if raw.is_directory and raw.kind == "deleted" and Path(raw.paths[0]) == session.root:
            session.publish(WatchError(f"watched root {session.root} was removed"))
            return

        try:
            events = session.normalizer.normalize(raw)
        except Exception as e:
            log.exception("Failed to normalize %s event for %s", raw.kind, raw.paths)
            session.publish(WatchError(f"failed to handle {raw.kind} event: {e}"))
            return

        for change in events:
            if not session.publish(change):
                log.debug("Session closed, dropping %s event for %s", change.kind.value, change.path)
                return


class WatchSession:
    """Owns one watch registration and its delivery queue.

    Usage:
        async with WatchSession(root) as session:
            item = await session.get()
    """

    _active_roots: ClassVar[set[Path]] = set()
    _registry_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        root: Path,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        ignore_patterns: Iterable[str] = (),
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self._root = Path(root).resolve()
        self._normalizer = ChangeEventNormalizer(self._root, ignore_patterns)
        self._queue: asyncio.Queue[OutboundItem] = asyncio.Queue(maxsize=queue_size)
        self._observer_factory = observer_factory
        self._observer: BaseObserver | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._claimed = False
        self._started = False
        self._closed = False

    @property
    def root(self) -> Path:
        return self._root

    @property
    def normalizer(self) -> ChangeEventNormalizer:
        return self._normalizer

    @property
    def is_watching(self) -> bool:
        """True while the OS watch is registered and running."""
        return self._observer is not None and not self._closed

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Register the watch and start producing events.

        A failure to register does not raise: it is queued as a WatchError
        so the consumer reports it and the connection stays usable.
        """
        if self._started:
            return
        self._started = True
        self._loop = asyncio.get_running_loop()

        try:
            self._observer = await self._register()
        except (OSError, WatchFailure) as e:
            self._release_root()
            log.error("Could not watch %s: %s", self._root, e)
            self._queue.put_nowait(WatchError(f"could not watch {self._root}: {e}"))
            return

        log.info("Watching %s", self._root)

    async def _register(self) -> BaseObserver:
        if not self._root.is_dir():
            raise WatchFailure(f"{self._root} is not a directory")
        self._claim_root()

        seeded = await asyncio.to_thread(self._normalizer.seed_from_disk)
        log.debug("Seeded %d existing files under %s", seeded, self._root)

        observer = self._observer_factory()
        observer.schedule(_SessionHandler(self), str(self._root), recursive=True)
        observer.start()
        return observer

    async def close(self) -> None:
        """Stop the watch and refuse further events. Idempotent."""
        if self._closed:
            return
        self._closed = True

        observer = self._observer
        self._observer = None
        try:
            if observer is not None:
                observer.stop()
                await asyncio.to_thread(observer.join)
                log.info("Stopped watching %s", self._root)
        finally:
            self._release_root()

    async def get(self) -> OutboundItem:
        """Wait for the next outbound item."""
        return await self._queue.get()

    def get_nowait(self) -> OutboundItem:
        """Next outbound item, or raise asyncio.QueueEmpty."""
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()

    def publish(self, item: OutboundItem) -> bool:
        """Hand an item to the consumer from a producer thread.

        Blocks while the queue is full. Returns False once the session is
        closed, which is the producer's signal to stop.
        """
        loop = self._loop
        if self._closed or loop is None:
            return False

        put = self._queue.put(item)
        try:
            future = asyncio.run_coroutine_threadsafe(put, loop)
        except RuntimeError:
            # Event loop already gone
            put.close()
            return False

        while True:
            try:
                future.result(timeout=_PUBLISH_POLL_INTERVAL)
                return True
            except concurrent.futures.TimeoutError:
                if self._closed:
                    future.cancel()
                    return False
            except concurrent.futures.CancelledError:
                return False

    def _claim_root(self) -> None:
        with WatchSession._registry_lock:
            for other in WatchSession._active_roots:
                if self._root.is_relative_to(other) or other.is_relative_to(self._root):
                    raise WatchFailure(f"{self._root} overlaps the active watch on {other}")
            WatchSession._active_roots.add(self._root)
            self._claimed = True

    def _release_root(self) -> None:
        if not self._claimed:
            return
        with WatchSession._registry_lock:
            WatchSession._active_roots.discard(self._root)
            self._claimed = False

    async def __aenter__(self) -> WatchSession:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
