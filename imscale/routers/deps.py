from fastapi import HTTPException, Request, status

from imscale.config.config import Settings
from imscale.services.path_resolver import (
    ForbiddenPathError,
    PathNotFoundError,
    PathResolver,
    ResolvedPath,
)


def get_settings(request: Request) -> Settings:
    """FastAPI dependency: reads from app.state.settings."""
    return request.app.state.settings


def get_resolver(request: Request) -> PathResolver:
    """FastAPI dependency: reads from app.state.resolver."""
    return request.app.state.resolver


def resolve_or_raise(resolver: PathResolver, path: str) -> ResolvedPath:
    try:
        return resolver.resolve(path)
    except ForbiddenPathError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden") from exc
    except PathNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found") from exc
