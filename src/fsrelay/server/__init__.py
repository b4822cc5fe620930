"""Network bindings for the relay.

Serves a FastAPI application under uvicorn:
- WebSocket binding: one duplex connection per peer at "/"
- HTTP binding: POST /write_file and GET /poll (long-poll)
"""

from fsrelay.server.routes import RelayAppState, create_app, get_state
from fsrelay.server.server import RelayServer

__all__ = [
    "RelayAppState",
    "RelayServer",
    "create_app",
    "get_state",
]
