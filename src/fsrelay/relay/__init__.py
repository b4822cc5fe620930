"""Per-connection relay between a watch session and a peer transport."""

from fsrelay.relay.loop import RelayLoop, RelayState, RelayStats
from fsrelay.relay.transport import EventSource, Transport

__all__ = [
    "EventSource",
    "RelayLoop",
    "RelayState",
    "RelayStats",
    "Transport",
]
