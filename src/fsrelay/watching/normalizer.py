"""Normalization of raw watch notifications into ChangeEvents.

The notification backend is platform dependent: it may coalesce or
duplicate events and sometimes can only say "something was created or
touched". This module maps whatever it reports onto the closed set of
create/update/delete events and drops the rest.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from fnmatch import fnmatch
from pathlib import Path

from fsrelay.logging import get_logger
from fsrelay.watching.events import ChangeEvent, ChangeKind, RawNotification

log = get_logger("watching.normalizer")

# Ambiguous "<x>_or_unknown" kinds are what a backend reports when it
# cannot tell more precisely; they classify the same as the precise kind.
CREATE_KINDS = frozenset({"created", "create_or_unknown"})
UPDATE_KINDS = frozenset({"modified", "modify_or_unknown"})
DELETE_KINDS = frozenset({"deleted", "remove_or_unknown"})
# A rename within the tree: paths are (source, destination)
MOVE_KINDS = frozenset({"moved"})


def classify(kind: str) -> ChangeKind | None:
    """Map a raw notification kind to a ChangeKind, or None to drop it."""
    if kind in CREATE_KINDS:
        return ChangeKind.CREATE
    if kind in UPDATE_KINDS:
        return ChangeKind.UPDATE
    if kind in DELETE_KINDS:
        return ChangeKind.DELETE
    return None


class ChangeEventNormalizer:
    """Turns raw notifications into ChangeEvents for one watched root.

    Keeps the set of paths known to exist so a delete is only reported
    for a path that was seen before. Not thread-safe: call ``normalize``
    from a single producer thread.
    """

    def __init__(self, root: Path, ignore_patterns: Iterable[str] = ()) -> None:
        self._root = Path(root)
        self._ignore_patterns = list(ignore_patterns)
        self._known: set[str] = set()

    @property
    def root(self) -> Path:
        return self._root

    def seed(self, paths: Iterable[str | Path]) -> None:
        """Mark paths as already observed (e.g. files present at startup)."""
        for path in paths:
            self._known.add(os.fspath(path))

    def seed_from_disk(self) -> int:
        """Seed with every regular file currently under the root.

        Returns:
            Number of files seeded.
        """
        before = len(self._known)
        for dirpath, _dirnames, filenames in os.walk(self._root):
            for name in filenames:
                path = os.path.join(dirpath, name)
                if not self.is_ignored(path):
                    self._known.add(path)
        return len(self._known) - before

    def is_known(self, path: str) -> bool:
        return path in self._known

    def is_ignored(self, path: str) -> bool:
        if not self._ignore_patterns:
            return False
        relative = Path(path).relative_to(self._root).as_posix()
        name = os.path.basename(path)
        return any(fnmatch(relative, pat) or fnmatch(name, pat) for pat in self._ignore_patterns)

    def normalize(self, raw: RawNotification) -> list[ChangeEvent]:
        """Produce zero or more ChangeEvents from one raw notification.

        Create/update content is read synchronously here; a read that
        fails (file already gone) yields empty content instead of an error.
        A move is reported as a delete of the source followed by a
        create (or update, if it replaced a known file) of the destination.
        """
        if raw.is_directory:
            return []
        if raw.kind in MOVE_KINDS:
            return self._normalize_move(raw)

        kind = classify(raw.kind)
        if kind is None:
            return []

        events: list[ChangeEvent] = []
        for path in raw.paths:
            if not self._in_root(path):
                log.warning("Dropping %s event outside %s: %s", raw.kind, self._root, path)
                continue
            if self.is_ignored(path):
                continue

            if kind is ChangeKind.DELETE:
                if path not in self._known:
                    log.debug("Dropping delete for never-seen path %s", path)
                    continue
                self._known.discard(path)
                events.append(ChangeEvent.delete(path))
                continue

            self._known.add(path)
            events.append(ChangeEvent(kind, path, _read_content(path)))

        return events

    def _normalize_move(self, raw: RawNotification) -> list[ChangeEvent]:
        if len(raw.paths) != 2:
            log.warning("Dropping move without a destination: %s", raw.paths)
            return []
        source, dest = raw.paths

        events: list[ChangeEvent] = []
        if self._in_root(source) and source in self._known:
            self._known.discard(source)
            events.append(ChangeEvent.delete(source))

        if self._in_root(dest) and not self.is_ignored(dest):
            kind = ChangeKind.UPDATE if dest in self._known else ChangeKind.CREATE
            self._known.add(dest)
            events.append(ChangeEvent(kind, dest, _read_content(dest)))
        return events

    def _in_root(self, path: str) -> bool:
        candidate = Path(path)
        return candidate != self._root and candidate.is_relative_to(self._root)


def _read_content(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        log.debug("Could not read %s (%s); sending empty content", path, e)
        return b""
