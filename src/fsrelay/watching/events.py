"""Event model shared by the watcher, relay loop and wire codec."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from watchdog.events import FileSystemEvent


class ChangeKind(str, Enum):
    """Normalized kinds of filesystem change."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A single normalized change in the watched tree.

    ``content`` is the file's bytes at observation time for create/update
    and always empty for delete.
    """

    kind: ChangeKind
    path: str
    content: bytes = b""

    @classmethod
    def create(cls, path: str, content: bytes) -> ChangeEvent:
        return cls(ChangeKind.CREATE, path, content)

    @classmethod
    def update(cls, path: str, content: bytes) -> ChangeEvent:
        return cls(ChangeKind.UPDATE, path, content)

    @classmethod
    def delete(cls, path: str) -> ChangeEvent:
        return cls(ChangeKind.DELETE, path)


@dataclass(frozen=True)
class WatchError:
    """Error-tagged outbound item for a failing watch."""

    message: str


# What flows from a WatchSession to its consumer
OutboundItem = Union[ChangeEvent, WatchError]


@dataclass(frozen=True)
class RawNotification:
    """A watch notification before normalization.

    ``kind`` is the watcher's own event type name (``created``,
    ``modified``, ``moved``, ...), ``paths`` lists the affected paths in
    the order the watcher reported them.
    """

    kind: str
    paths: tuple[str, ...]
    is_directory: bool = False

    @classmethod
    def from_watchdog(cls, event: FileSystemEvent) -> RawNotification:
        paths = [_as_str(event.src_path)]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(_as_str(dest_path))
        return cls(kind=event.event_type, paths=tuple(paths), is_directory=event.is_directory)


def _as_str(path: str | bytes) -> str:
    return os.fsdecode(path)
