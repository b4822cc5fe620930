"""Error kinds raised across the relay.

Request-scoped errors (NoNewlineToSeparatePath, InvalidPath, IOFailure)
reject a single write request. WatchFailure is reported to the peer as an
error frame. TransportClosed ends one connection. None of them is fatal to
the process.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all fsrelay errors."""

    kind = "RelayError"

    def describe(self) -> str:
        """Text sent back to the peer for this error."""
        detail = str(self)
        if not detail or detail == self.kind:
            return self.kind
        return f"{self.kind}: {detail}"


class NoNewlineToSeparatePath(RelayError):
    """Inbound frame has no newline between path and content."""

    kind = "NoNewlineToSeparatePath"


class InvalidPath(RelayError):
    """Path is not valid text or escapes the base directory."""

    kind = "InvalidPath"


class IOFailure(RelayError):
    """Directory creation or file write failed."""

    kind = "IOFailure"

    def __init__(self, error: OSError) -> None:
        super().__init__(str(error))
        self.error = error

    def describe(self) -> str:
        # Peers get the underlying I/O message verbatim
        return str(self.error)


class WatchFailure(RelayError):
    """The filesystem notification mechanism reported an error."""

    kind = "WatchFailure"


class ProtocolError(RelayError):
    """An outbound frame would be ambiguous on the wire."""

    kind = "ProtocolError"


class TransportClosed(RelayError):
    """The peer connection is gone."""

    kind = "TransportClosed"
