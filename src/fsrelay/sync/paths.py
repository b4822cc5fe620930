"""Resolution of peer-supplied relative paths under the base directory.

Every inbound write goes through PathResolver before disk is touched:
the relative path must decode as text, must not be absolute, and must
resolve (symlinks followed) to a strict descendant of the base directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePath

from fsrelay.errors import InvalidPath, IOFailure
from fsrelay.logging import get_logger

log = get_logger("sync")


@dataclass(frozen=True)
class WriteRequest:
    """A peer's request to materialize a file under the base directory."""

    relative_path: str
    content: bytes


class PathResolver:
    """Turns relative paths into safe absolute paths under ``base_dir``.

    Example:
        resolver = PathResolver(Path("/project"))
        resolver.write(WriteRequest("game/init.luau", b"print(1)"))
    """

    def __init__(self, base_dir: Path) -> None:
        self._base = Path(base_dir).resolve()

    @property
    def base_dir(self) -> Path:
        return self._base

    def resolve(self, relative_path: str | bytes) -> Path:
        """Resolve a relative path against the base directory.

        Args:
            relative_path: Path from the peer, as text or raw UTF-8 bytes.

        Returns:
            Absolute path inside the base directory.

        Raises:
            InvalidPath: If the path is not text, is empty or absolute, or
                resolves outside the base directory.
        """
        if isinstance(relative_path, bytes):
            try:
                relative_path = relative_path.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidPath("path is not valid UTF-8") from e

        if not relative_path:
            raise InvalidPath("empty path")
        if "\x00" in relative_path:
            raise InvalidPath(f"path contains NUL: {relative_path!r}")

        candidate = PurePath(relative_path)
        if candidate.is_absolute() or candidate.anchor:
            raise InvalidPath(f"absolute path not allowed: {relative_path!r}")

        resolved = (self._base / candidate).resolve()
        if resolved == self._base or not resolved.is_relative_to(self._base):
            raise InvalidPath(f"{relative_path!r} escapes {self._base}")

        return resolved

    def ensure_parent(self, absolute_path: Path) -> None:
        """Create all missing ancestor directories of ``absolute_path``.

        Raises:
            IOFailure: If a directory cannot be created.
        """
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(e) from e

    def write(self, request: WriteRequest) -> Path:
        """Apply a write request, replacing the file's bytes exactly.

        Returns:
            The absolute path written.

        Raises:
            InvalidPath: If the relative path is rejected.
            IOFailure: If the directory or file cannot be written.
        """
        path = self.resolve(request.relative_path)
        self.ensure_parent(path)
        try:
            path.write_bytes(request.content)
        except OSError as e:
            raise IOFailure(e) from e
        log.debug("Wrote %d bytes to %s", len(request.content), path)
        return path
