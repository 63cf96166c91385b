"""Image root browser: directory listings and single-file detail."""

import asyncio
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from imscale.routers.deps import get_resolver, resolve_or_raise
from imscale.schemas.entries import Entry, EntryDetail
from imscale.services.listing import describe_file, list_directory
from imscale.services.path_resolver import PathResolver

router = APIRouter(tags=["browse"])
logger = structlog.get_logger(__name__)


@router.get("/list/{path:path}", response_model=list[Entry] | EntryDetail)
async def list_path(
    path: str,
    resolver: Annotated[PathResolver, Depends(get_resolver)],
) -> list[Entry] | EntryDetail:
    resolved = resolve_or_raise(resolver, path)
    logger.info("list_requested", path=str(resolved.path))

    if not resolved.is_dir:
        return await asyncio.to_thread(describe_file, resolved)

    try:
        return await asyncio.to_thread(list_directory, resolved)
    except OSError as exc:
        logger.error("list_failed", path=str(resolved.path), error=str(exc))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error") from exc
