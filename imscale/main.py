import logging
import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from imscale.config.config import Settings, settings
from imscale.routers import browse, health, images
from imscale.services.path_resolver import PathResolver

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    resolver: PathResolver = app.state.resolver
    if resolver.base.is_dir():
        logger.info("serving_images", image_dir=str(resolver.base))
    else:
        logger.warning("image_dir_missing", image_dir=str(resolver.base))
    yield
    logger.info("shutdown")


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    configure_logging(app_settings.log_level)

    app = FastAPI(
        title="imscale",
        description="Image directory browser with on-demand resizing",
        version=app_settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.resolver = PathResolver(app_settings.image_dir)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(browse.router)
    app.include_router(images.router)
    if app_settings.legacy_resize_routes:
        app.include_router(images.legacy_router)

    # Anything unmatched falls through to the public asset tree, when there is one.
    if os.path.isdir(app_settings.public_dir):
        app.mount("/", StaticFiles(directory=app_settings.public_dir, html=True), name="public")
    return app


app = create_app()
