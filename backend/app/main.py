"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.cache.service import CacheService
from app.config import get_settings
from app.routers import admin, merge, render, serving

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    _configure_logging(settings.log_level)
    cache = CacheService.from_settings(settings)
    app.state.cache = cache
    logger.info("app.started fast_tier=%s corpus_dir=%s", cache.fast is not None, settings.corpus_dir)
    try:
        yield
    finally:
        app.state.cache = None
        cache.close()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    application = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    application.include_router(merge.router, tags=["merge"])
    application.include_router(render.router, tags=["render"])
    application.include_router(admin.router, tags=["admin"])
    # Catch-all document route; must stay last.
    application.include_router(serving.router, tags=["serving"])
    return application


app = create_app()
