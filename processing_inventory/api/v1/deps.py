"""Shared FastAPI dependencies for the v1 API."""

from typing import Annotated

from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.cache.processing_batch_cache import ProcessingBatchCache
from processing_inventory.cache.store import CacheStore
from processing_inventory.config import settings
from processing_inventory.database import get_session
from processing_inventory.domain.services.batch_service import ProcessingBatchService
from processing_inventory.domain.services.stage_service import ProcessingStageService


def get_cache_store(request: Request) -> CacheStore:
    """The cache store created during application start-up."""
    return request.app.state.cache_store


def get_batch_cache(
    store: Annotated[CacheStore, Depends(get_cache_store)],
) -> ProcessingBatchCache:
    return ProcessingBatchCache(store, ttl_seconds=settings.cache_ttl_seconds)


def get_batch_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    cache: Annotated[ProcessingBatchCache, Depends(get_batch_cache)],
) -> ProcessingBatchService:
    return ProcessingBatchService(session, cache)


def get_stage_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    cache: Annotated[ProcessingBatchCache, Depends(get_batch_cache)],
) -> ProcessingStageService:
    return ProcessingStageService(session, cache)
