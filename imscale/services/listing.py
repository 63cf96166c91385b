"""Directory listing and single-file detail for the browse endpoint."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path
from stat import S_ISREG
from urllib.parse import quote

import structlog
from PIL import Image

from imscale.schemas.entries import Entry, EntryDetail, EntryType
from imscale.services.path_resolver import ResolvedPath

logger = structlog.get_logger(__name__)

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".ico", ".tiff", ".webp", ".avif"}

DOWNLOAD_PREFIX = "/download/"


def entry_type(name: str, is_dir: bool) -> EntryType:
    if is_dir:
        return "directory"
    if os.path.splitext(name)[1].lower() in IMAGE_EXTS:
        return "image"
    return "file"


def entry_modified(stat: os.stat_result, default: datetime) -> datetime:
    """Return the UTC modification time of ``stat``, or ``default`` when it cannot be represented."""
    try:
        return datetime.fromtimestamp(stat.st_mtime, UTC)
    except (OverflowError, OSError, ValueError):
        return default


def list_directory(resolved: ResolvedPath, now: datetime | None = None) -> list[Entry]:
    """List the direct children of a directory, skipping dotfiles and unreadable entries.

    Directories come first, then files, each group sorted case-insensitively by name.
    """
    now = now or datetime.now(UTC)
    entries: list[Entry] = []

    with os.scandir(resolved.path) as it:
        for child in it:
            if child.name.startswith("."):
                continue
            try:
                stat = child.stat()
                is_dir = child.is_dir()
            except OSError as exc:
                logger.debug("entry_skipped", path=child.path, error=str(exc))
                continue
            entries.append(
                Entry(
                    name=child.name,
                    type=entry_type(child.name, is_dir),
                    size=stat.st_size,
                    modified=entry_modified(stat, now),
                )
            )

    entries.sort(key=lambda e: (e.type != "directory", e.name.lower()))
    return entries


def read_dimensions(path: Path) -> tuple[int, int]:
    """Read pixel dimensions from the image header without decoding pixel data.

    Returns ``(0, 0)`` when the file is not a readable image.
    """
    try:
        with Image.open(path) as img:
            return img.size
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("dimension_read_failed", path=str(path), error=str(exc))
        return 0, 0


def describe_file(resolved: ResolvedPath, now: datetime | None = None) -> EntryDetail:
    now = now or datetime.now(UTC)
    if S_ISREG(resolved.stat.st_mode):
        width, height = read_dimensions(resolved.path)
    else:
        width, height = 0, 0
    return EntryDetail(
        name=resolved.path.name,
        type=entry_type(resolved.path.name, False),
        size=resolved.stat.st_size,
        modified=entry_modified(resolved.stat, now),
        width=width,
        height=height,
        download_url=DOWNLOAD_PREFIX + quote(resolved.requested),
    )
