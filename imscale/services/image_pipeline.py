"""Image pipeline: decode, orient, resize and re-encode a resolved image file."""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime
from stat import S_ISREG

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from imscale.schemas.entries import ResizeRequest
from imscale.services.listing import entry_modified
from imscale.services.path_resolver import ResolvedPath

logger = structlog.get_logger(__name__)

CACHE_CONTROL = "public, max-age=31536000"
DEFAULT_MEDIA_TYPE = "application/octet-stream"

MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "AVIF": "image/avif",
    "TIFF": "image/tiff",
}

LEGACY_MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
}

# Pillow reports multi-picture JPEGs (most camera output) as MPO.
_FORMAT_ALIASES = {"MPO": "JPEG"}


class ImageNotFoundError(Exception):
    """Raised when the image file cannot be opened."""


class ImageProcessingError(Exception):
    """Raised when format detection, decoding, orientation, resizing or encoding fails."""


@dataclass(frozen=True)
class RenderedImage:
    content: bytes
    format: str
    media_type: str
    last_modified: datetime

    def headers(self, cache: bool = True) -> dict[str, str]:
        headers = {"Content-Type": self.media_type}
        if cache:
            headers["Last-Modified"] = format_datetime(self.last_modified, usegmt=True)
            headers["Cache-Control"] = CACHE_CONTROL
        return headers


def media_type_for(fmt: str, table: dict[str, str] = MEDIA_TYPES) -> str:
    return table.get(fmt, DEFAULT_MEDIA_TYPE)


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Scale ``width`` x ``height`` to fit the bounding box, keeping the aspect ratio.

    Either direction is allowed; a side never drops below one pixel.
    """
    ratio = min(max_width / width, max_height / height)
    return max(round(width * ratio), 1), max(round(height * ratio), 1)


def resize(img: Image.Image, request: ResizeRequest) -> Image.Image:
    if not request.should_resize:
        return img
    # Pillow silently falls back to nearest-neighbour for palette and bilevel modes.
    if img.mode == "P":
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")
    elif img.mode == "1":
        img = img.convert("L")
    if request.preserve_aspect_ratio:
        size = fit_within(img.width, img.height, request.width, request.height)
    else:
        size = (request.width, request.height)
    return img.resize(size, Image.Resampling.LANCZOS)


def render_image(
    resolved: ResolvedPath,
    request: ResizeRequest,
    orient: bool = True,
    media_types: dict[str, str] = MEDIA_TYPES,
) -> RenderedImage:
    """Produce re-encoded bytes for ``resolved`` in its original format.

    Blocking and CPU-bound; callers in async code should run it in a worker thread.
    """
    path = resolved.path
    if not S_ISREG(resolved.stat.st_mode):
        logger.error("image_not_regular_file", path=str(path))
        raise ImageNotFoundError(str(path))

    try:
        fp = open(path, "rb")
    except OSError as exc:
        logger.error("image_open_failed", path=str(path), error=str(exc))
        raise ImageNotFoundError(str(path)) from exc

    with fp:
        try:
            source = Image.open(fp)
        except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
            logger.error("image_format_unknown", path=str(path), error=str(exc))
            raise ImageProcessingError(f"Cannot determine image format: {path}") from exc

        with source:
            fmt = _FORMAT_ALIASES.get(source.format, source.format)
            icc_profile = source.info.get("icc_profile")

            try:
                source.load()
            except (OSError, ValueError, SyntaxError, EOFError, Image.DecompressionBombError) as exc:
                logger.error("image_decode_failed", path=str(path), error=str(exc))
                raise ImageProcessingError(f"Cannot decode image: {path}") from exc

            img = source
            if orient:
                try:
                    img = ImageOps.exif_transpose(source)
                except (OSError, ValueError, KeyError, SyntaxError, TypeError, struct.error) as exc:
                    logger.error("image_orientation_failed", path=str(path), error=str(exc))
                    raise ImageProcessingError(f"Cannot read image orientation: {path}") from exc

            try:
                img = resize(img, request)
            except (OSError, ValueError) as exc:
                logger.error("image_resize_failed", path=str(path), error=str(exc))
                raise ImageProcessingError(f"Cannot resize image: {path}") from exc

            buffer = io.BytesIO()
            save_params = {"icc_profile": icc_profile} if icc_profile else {}
            if fmt == "ICO":
                # The ICO encoder otherwise writes its own fixed square sizes.
                save_params["sizes"] = [img.size]
            try:
                img.save(buffer, format=fmt, **save_params)
            except (OSError, ValueError, KeyError) as exc:
                logger.error("image_encode_failed", path=str(path), format=fmt, error=str(exc))
                raise ImageProcessingError(f"Cannot encode image as {fmt}: {path}") from exc

    return RenderedImage(
        content=buffer.getvalue(),
        format=fmt,
        media_type=media_type_for(fmt, media_types),
        last_modified=entry_modified(resolved.stat, datetime.now(UTC)),
    )
