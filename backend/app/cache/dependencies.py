"""FastAPI cache dependencies."""

from fastapi import HTTPException, Request

from app.cache.service import CacheService


def get_cache(request: Request) -> CacheService:
    """Return the cache service owned by the running application."""

    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        raise HTTPException(status_code=503, detail="Cache service is not initialized")
    return cache
