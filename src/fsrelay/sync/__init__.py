"""Path resolution and disk writes for inbound requests."""

from fsrelay.sync.paths import PathResolver, WriteRequest

__all__ = [
    "PathResolver",
    "WriteRequest",
]
