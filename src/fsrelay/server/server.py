"""Relay web server lifecycle management."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any

import uvicorn

from fsrelay.config import Binding, Config
from fsrelay.server.routes import create_app, get_state

log = logging.getLogger(__name__)


class RelayServer:
    """Runs the relay app under uvicorn, in the foreground or as a task."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self.app = create_app(config)
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None
        self._start_time: float | None = None

    def _build_server(self) -> uvicorn.Server:
        server_config = uvicorn.Config(
            self.app,
            host=self._config.server.host,
            port=self._config.server.port,
            log_level="warning",
            access_log=False,
        )
        return uvicorn.Server(server_config)

    @property
    def url(self) -> str:
        scheme = "ws" if self._config.server.binding is Binding.WEBSOCKET else "http"
        return f"{scheme}://{self._config.server.host}:{self._config.server.port}/"

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.is_running(),
            "url": self.url,
            "uptime": time.time() - self._start_time if self._start_time else 0,
            "connections": get_state(self.app).connections.get_connection_count(),
        }

    async def serve(self) -> None:
        """Serve until uvicorn exits (Ctrl+C or signal)."""
        self._server = self._build_server()
        self._start_time = time.time()
        log.info("Relay listening on %s", self.url)
        await self._server.serve()

    async def start(self) -> None:
        """Start serving in a background task."""
        if self.is_running():
            raise RuntimeError(f"Relay already running on {self.url}")

        self._server = self._build_server()
        self._task = asyncio.create_task(self._server.serve())
        self._start_time = time.time()
        log.info("Relay started on %s", self.url)

    async def stop(self) -> None:
        """Stop a server started with ``start``."""
        if not self._task:
            return

        if self._server is not None:
            self._server.should_exit = True
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

        log.info("Relay stopped (was on %s)", self.url)
        self._task = None
        self._server = None
        self._start_time = None
