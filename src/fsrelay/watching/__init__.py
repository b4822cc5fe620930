"""File watching for fsrelay.

Wraps watchdog's native notification backend: raw notifications are
normalized into create/update/delete ChangeEvents and handed to the relay
through a bounded queue owned by a WatchSession.
"""

from fsrelay.watching.events import (
    ChangeEvent,
    ChangeKind,
    OutboundItem,
    RawNotification,
    WatchError,
)
from fsrelay.watching.normalizer import ChangeEventNormalizer, classify
from fsrelay.watching.session import WatchSession

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ChangeEventNormalizer",
    "OutboundItem",
    "RawNotification",
    "WatchError",
    "WatchSession",
    "classify",
]
