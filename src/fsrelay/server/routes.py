"""FastAPI application exposing the relay over WebSocket or HTTP."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse

from fsrelay.config import Binding, Config, resolve_root
from fsrelay.errors import InvalidPath, IOFailure, NoNewlineToSeparatePath
from fsrelay.logging import get_logger
from fsrelay.relay import RelayLoop
from fsrelay.server.connections import ConnectionManager
from fsrelay.server.poll import EventPoller, PolledEvent
from fsrelay.server.websocket import WebSocketTransport
from fsrelay.sync import PathResolver
from fsrelay.transport.wire import decode_write_request
from fsrelay.watching import WatchSession

log = get_logger("server")


@dataclass
class RelayAppState:
    """Per-application state shared by the routes."""

    config: Config
    root: Path
    resolver: PathResolver
    connections: ConnectionManager = field(default_factory=ConnectionManager)
    poller: EventPoller | None = None
    started_at: float = field(default_factory=time.time)

    @property
    def binding(self) -> Binding:
        return self.config.server.binding

    def new_watch_session(self) -> WatchSession:
        return WatchSession(
            self.root,
            queue_size=self.config.watch.queue_size,
            ignore_patterns=self.config.watch.ignore_patterns,
        )


def get_state(app: FastAPI) -> RelayAppState:
    return app.state.relay


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    state = get_state(app)
    log.info("Relay serving %s over %s", state.root, state.binding.value)

    if state.binding is Binding.HTTP:
        # Request/response has no connection to scope a watch to, so the
        # HTTP binding keeps one watch for the whole process.
        async with state.new_watch_session() as session:
            state.poller = EventPoller(session, state.config.poll.timeout)
            try:
                yield
            finally:
                state.poller = None
    else:
        yield

    await state.connections.close_all()


def create_app(config: Config) -> FastAPI:
    """Create the FastAPI application for one relay root."""
    root = resolve_root(config)
    app = FastAPI(
        title="fsrelay",
        description="Bidirectional file-synchronization relay",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.relay = RelayAppState(config=config, root=root, resolver=PathResolver(root))

    _register_common_routes(app)
    if config.server.binding is Binding.HTTP:
        _register_http_routes(app)
    else:
        _register_websocket_routes(app)

    return app


def _register_common_routes(app: FastAPI) -> None:
    @app.get("/status")
    async def status() -> dict[str, Any]:
        """Relay health and configuration summary."""
        state = get_state(app)
        return {
            "status": "ok",
            "binding": state.binding.value,
            "root": str(state.root),
            "uptime": time.time() - state.started_at,
            "connections": state.connections.get_connection_count(),
        }


def _register_websocket_routes(app: FastAPI) -> None:
    @app.websocket("/")
    async def relay_endpoint(websocket: WebSocket) -> None:
        """One peer session: a fresh watch for the life of the connection."""
        state = get_state(app)
        client = websocket.client
        peer = f"{client.host}:{client.port}" if client else "peer"
        transport = WebSocketTransport(websocket)

        await state.connections.connect(websocket)
        log.info("Connection from %s", peer)
        try:
            async with state.new_watch_session() as session:
                relay = RelayLoop(transport, session, state.resolver, peer=peer)
                await relay.run()
        finally:
            await state.connections.disconnect(websocket)
            await transport.close()


def _register_http_routes(app: FastAPI) -> None:
    @app.post("/write_file", response_class=PlainTextResponse)
    async def write_file(request: Request) -> PlainTextResponse:
        """Apply one inbound frame as a file write."""
        state = get_state(app)
        body = await request.body()
        try:
            write_request = decode_write_request(body)
            await asyncio.to_thread(state.resolver.write, write_request)
        except (NoNewlineToSeparatePath, InvalidPath, IOFailure) as e:
            log.warning("Rejected write: %s", e.describe())
            return PlainTextResponse(e.describe(), status_code=500)
        return PlainTextResponse("")

    @app.get(
        "/poll",
        response_model=list[PolledEvent],
        response_model_exclude_none=True,
    )
    async def poll(request: Request) -> list[PolledEvent]:
        """Block until events are available, then return all of them.

        A client that disconnects while waiting takes nothing with it.
        """
        state = get_state(app)
        if state.poller is None:
            return []
        items = await state.poller.poll(request.is_disconnected)
        return [PolledEvent.from_item(item) for item in items]
