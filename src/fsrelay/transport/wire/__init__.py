"""Wire codec for the relay protocol."""

from fsrelay.transport.wire.codec import (
    SEPARATOR,
    decode_outbound,
    decode_write_request,
    encode_error,
    encode_event,
    encode_outbound,
)

__all__ = [
    "SEPARATOR",
    "decode_outbound",
    "decode_write_request",
    "encode_error",
    "encode_event",
    "encode_outbound",
]
