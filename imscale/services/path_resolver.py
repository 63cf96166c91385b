"""Path resolution: maps client-supplied relative paths onto the configured image root."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from stat import S_ISDIR

import structlog

logger = structlog.get_logger(__name__)


class ForbiddenPathError(Exception):
    """Raised when a path escapes the base directory or touches a hidden segment."""

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class PathNotFoundError(Exception):
    """Raised when a contained path does not exist on disk."""

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class ResolvedPath:
    """A canonical path proven to live under the base directory.

    Only values of this type are handed to filesystem and decode code.
    """

    path: Path
    requested: str
    stat: os.stat_result

    @property
    def is_dir(self) -> bool:
        return S_ISDIR(self.stat.st_mode)


def has_hidden_segment(path: str) -> bool:
    """True if any ``/``-delimited segment starts with a dot (``..`` included)."""
    return any(segment.startswith(".") for segment in path.split("/"))


class PathResolver:
    """Resolves request paths against a single base directory.

    The base is canonicalized once at construction; every resolved path is
    canonicalized too and must be the base itself or one of its descendants.
    """

    def __init__(self, base_dir: str | os.PathLike[str]) -> None:
        self._base = Path(os.path.realpath(base_dir))

    @property
    def base(self) -> Path:
        return self._base

    def resolve(self, raw: str) -> ResolvedPath:
        """Validate ``raw`` and return its ``ResolvedPath``.

        ``raw`` is the route parameter as the framework hands it over, already
        percent-decoded once; it is not decoded again, so literal ``%`` in file
        names survives.

        Raises ForbiddenPathError for hidden segments or containment
        violations, PathNotFoundError when the target does not exist.
        """
        if has_hidden_segment(raw):
            logger.error("path_forbidden", path=raw, reason="hidden_segment")
            raise ForbiddenPathError("Hidden path segment", raw)

        if "\x00" in raw:
            logger.error("path_forbidden", path=raw, reason="null_byte")
            raise ForbiddenPathError("Null byte in path", raw)

        candidate = self._base / raw if raw else self._base
        canonical = Path(os.path.realpath(candidate))

        if not canonical.is_relative_to(self._base):
            logger.error("path_forbidden", path=str(candidate), resolved=str(canonical), reason="outside_base")
            raise ForbiddenPathError("Path escapes base directory", raw)

        try:
            stat = os.stat(canonical)
        except OSError as exc:
            logger.info("path_not_found", path=str(canonical), error=str(exc))
            raise PathNotFoundError("Path not found", raw) from exc

        return ResolvedPath(path=canonical, requested=raw, stat=stat)
