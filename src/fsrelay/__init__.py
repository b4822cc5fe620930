"""fsrelay: bidirectional file-synchronization relay over WebSocket or HTTP."""

__version__ = "0.1.0"

# Public API
from fsrelay.config import Config, get_config, load_config
from fsrelay.errors import (
    InvalidPath,
    IOFailure,
    NoNewlineToSeparatePath,
    ProtocolError,
    RelayError,
    TransportClosed,
    WatchFailure,
)
from fsrelay.relay import RelayLoop, RelayState, Transport
from fsrelay.sync import PathResolver, WriteRequest
from fsrelay.watching import ChangeEvent, ChangeEventNormalizer, ChangeKind, WatchError, WatchSession

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config",
    # Errors
    "RelayError",
    "NoNewlineToSeparatePath",
    "InvalidPath",
    "IOFailure",
    "WatchFailure",
    "ProtocolError",
    "TransportClosed",
    # Relay
    "RelayLoop",
    "RelayState",
    "Transport",
    # Paths
    "PathResolver",
    "WriteRequest",
    # Watching
    "ChangeEvent",
    "ChangeEventNormalizer",
    "ChangeKind",
    "WatchError",
    "WatchSession",
]
