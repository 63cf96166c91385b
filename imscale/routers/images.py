"""Image download endpoints: re-encoded, optionally resized images."""

import asyncio
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from imscale.config.config import Settings
from imscale.routers.deps import get_resolver, get_settings, resolve_or_raise
from imscale.schemas.entries import ResizeRequest
from imscale.services.image_pipeline import (
    LEGACY_MEDIA_TYPES,
    MEDIA_TYPES,
    ImageNotFoundError,
    ImageProcessingError,
    RenderedImage,
    render_image,
)
from imscale.services.path_resolver import PathResolver, ResolvedPath

router = APIRouter(tags=["images"])
legacy_router = APIRouter(tags=["images"])
logger = structlog.get_logger(__name__)

Dimension = Annotated[int | None, Query(gt=0)]


async def _render(
    settings: Settings,
    resolved: ResolvedPath,
    resize: ResizeRequest,
    orient: bool,
    media_types: dict[str, str],
) -> RenderedImage:
    """Run the blocking pipeline in a worker thread and map its failures to HTTP errors."""
    work = asyncio.to_thread(render_image, resolved, resize, orient, media_types)
    try:
        if settings.render_timeout_seconds is None:
            return await work
        return await asyncio.wait_for(work, timeout=settings.render_timeout_seconds)
    except ImageNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found") from exc
    except ImageProcessingError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error") from exc
    except TimeoutError as exc:
        logger.error("image_render_timeout", path=str(resolved.path), timeout=settings.render_timeout_seconds)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error") from exc


@router.get("/download/{path:path}")
async def download(
    path: str,
    settings: Annotated[Settings, Depends(get_settings)],
    resolver: Annotated[PathResolver, Depends(get_resolver)],
    width: Dimension = None,
    height: Dimension = None,
    preserve_aspect_ratio: bool = False,
) -> Response:
    """Serve an image re-encoded in its own format, upright, optionally resized.

    Resizing happens only when both ``width`` and ``height`` are given.
    """
    resolved = resolve_or_raise(resolver, path)
    logger.info("download_requested", path=str(resolved.path), width=width, height=height)

    resize = ResizeRequest(width=width, height=height, preserve_aspect_ratio=preserve_aspect_ratio)
    rendered = await _render(settings, resolved, resize, orient=True, media_types=MEDIA_TYPES)

    logger.info("download_served", path=str(resolved.path), format=rendered.format, bytes=len(rendered.content))
    return Response(content=rendered.content, headers=rendered.headers())


@legacy_router.get("/images/{path:path}")
async def resize_image(
    path: str,
    settings: Annotated[Settings, Depends(get_settings)],
    resolver: Annotated[PathResolver, Depends(get_resolver)],
    width: Annotated[int, Query(gt=0)],
    height: Annotated[int, Query(gt=0)],
    preserve_aspect_ratio: bool = False,
) -> Response:
    """Direct-resize surface kept for older clients: no orientation fix, no cache headers."""
    resolved = resolve_or_raise(resolver, path)
    logger.info("resize_requested", path=str(resolved.path), width=width, height=height)

    resize = ResizeRequest(width=width, height=height, preserve_aspect_ratio=preserve_aspect_ratio)
    rendered = await _render(settings, resolved, resize, orient=False, media_types=LEGACY_MEDIA_TYPES)
    return Response(content=rendered.content, headers=rendered.headers(cache=False))
