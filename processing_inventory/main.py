"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, AsyncGenerator

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.api.v1.deps import get_cache_store
from processing_inventory.api.v1.router import router as api_v1_router
from processing_inventory.cache.store import CacheStore, CacheUnavailableError, RedisCacheStore
from processing_inventory.config import settings
from processing_inventory.database import engine, get_session
from processing_inventory.logging_config import configure_logging
from processing_inventory.middleware import CorrelationIdMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    """Configure application resources on startup and release them on shutdown."""
    configure_logging(log_level=settings.log_level)

    # Tests install their own store before startup
    owns_store = not hasattr(application.state, "cache_store")
    if owns_store:
        application.state.cache_store = RedisCacheStore.from_url(settings.redis_url)

    yield

    if owns_store:
        await application.state.cache_store.close()
        del application.state.cache_store
    await engine.dispose()


app = FastAPI(
    title="Processing Inventory API",
    description="Produce processing batches with derived availability",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Attach correlation ID middleware (must be added before routes)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(api_v1_router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and answer with a generic message."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health", tags=["health"])
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[CacheStore, Depends(get_cache_store)],
) -> dict[str, Any]:
    """Report database and cache reachability."""
    database_ok = True
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        database_ok = False

    cache_ok = True
    try:
        cache_ok = await store.ping()
    except CacheUnavailableError:
        logger.exception("Cache health check failed")
        cache_ok = False

    return {
        "status": "ok" if database_ok and cache_ok else "degraded",
        "database": database_ok,
        "cache": cache_ok,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def run() -> None:
    """Serve the API with uvicorn using the configured host, port and workers."""
    uvicorn.run(
        "processing_inventory.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        workers=None if settings.api_reload else settings.api_workers,
        log_config=None,
    )


if __name__ == "__main__":
    run()
