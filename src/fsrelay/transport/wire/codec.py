"""Byte framing for the relay's wire protocol.

Each frame is one transport message (one WebSocket message or one HTTP
body); there are no length prefixes.

Outbound (server -> peer):
    c<absolute path>\\n<content>     file created
    u<absolute path>\\n<content>     file updated
    d<absolute path>                 file deleted
    e<utf-8 message>                 error report

Inbound (peer -> server):
    <relative path>\\n<content>      write request

The first newline always separates path from content, so paths can never
contain one; content may contain anything. Paths are the platform's raw
path bytes and peers should treat them as opaque.
"""

from __future__ import annotations

import os

from fsrelay.errors import InvalidPath, NoNewlineToSeparatePath, ProtocolError
from fsrelay.sync.paths import WriteRequest
from fsrelay.watching.events import ChangeEvent, ChangeKind, OutboundItem, WatchError

SEPARATOR = b"\n"
PATH_ENCODING = "utf-8"

TAG_CREATE = b"c"
TAG_UPDATE = b"u"
TAG_DELETE = b"d"
TAG_ERROR = b"e"

_TAGS = {
    ChangeKind.CREATE: TAG_CREATE,
    ChangeKind.UPDATE: TAG_UPDATE,
    ChangeKind.DELETE: TAG_DELETE,
}


def encode_event(event: ChangeEvent) -> bytes:
    """Encode a ChangeEvent as an outbound frame.

    Raises:
        ProtocolError: If the path contains a newline, which would make the
            frame ambiguous. This is not fatal to the connection: the relay
            loop reports it to the peer as an error frame, drops the event
            and keeps relaying.

    Example:
        >>> encode_event(ChangeEvent.create("/p/a.txt", b"hi"))
        b'c/p/a.txt\\nhi'
    """
    path_bytes = os.fsencode(event.path)
    if SEPARATOR in path_bytes:
        raise ProtocolError(f"path contains a newline: {event.path!r}")

    tag = _TAGS[event.kind]
    if event.kind is ChangeKind.DELETE:
        return tag + path_bytes
    return tag + path_bytes + SEPARATOR + event.content


def encode_error(message: str) -> bytes:
    """Encode an error report frame."""
    return TAG_ERROR + message.encode(PATH_ENCODING, "replace")


def encode_outbound(item: OutboundItem) -> bytes:
    """Encode anything a WatchSession can produce."""
    if isinstance(item, WatchError):
        return encode_error(f"WatchFailure: {item.message}")
    return encode_event(item)


def decode_write_request(frame: bytes) -> WriteRequest:
    """Decode an inbound frame into a WriteRequest.

    Only the path/content split and text decoding happen here; whether
    the path is safe to write is PathResolver's decision.

    Raises:
        NoNewlineToSeparatePath: If the frame has no newline.
        InvalidPath: If the path bytes are not valid UTF-8.
    """
    position = frame.find(SEPARATOR)
    if position == -1:
        raise NoNewlineToSeparatePath()

    path_bytes = frame[:position]
    try:
        relative_path = path_bytes.decode(PATH_ENCODING)
    except UnicodeDecodeError as e:
        raise InvalidPath(f"path is not valid {PATH_ENCODING}") from e

    return WriteRequest(relative_path=relative_path, content=frame[position + 1 :])


def decode_outbound(frame: bytes) -> ChangeEvent | WatchError:
    """Decode an outbound frame (used by peers and tests).

    Raises:
        ProtocolError: If the frame is empty, has an unknown tag, or a
            create/update frame lacks its separator.
    """
    if not frame:
        raise ProtocolError("empty frame")

    tag, body = frame[:1], frame[1:]
    if tag == TAG_ERROR:
        return WatchError(body.decode(PATH_ENCODING, "replace"))
    if tag == TAG_DELETE:
        return ChangeEvent.delete(os.fsdecode(body))
    if tag in (TAG_CREATE, TAG_UPDATE):
        position = body.find(SEPARATOR)
        if position == -1:
            raise ProtocolError(f"{tag!r} frame has no path separator")
        kind = ChangeKind.CREATE if tag == TAG_CREATE else ChangeKind.UPDATE
        return ChangeEvent(kind, os.fsdecode(body[:position]), body[position + 1 :])
    raise ProtocolError(f"unknown frame tag {tag!r}")
