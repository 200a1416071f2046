"""Read-through caching and invalidation for processing batch views.

Cache entries hold raw batch snapshots, never derived fields. Every read,
whether served from the cache or from the database, runs the snapshot through
the same aggregator, so a cached entry can be stale on facts (until its TTL
or an invalidation) but never on how status and availability are derived.
"""

import logging
import math
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from processing_inventory.cache.store import (
    CacheEntryCorruptError,
    CacheStore,
    CacheUnavailableError,
)
from processing_inventory.config import settings
from processing_inventory.domain.services.batch_aggregator import (
    aggregate_batch,
    aggregate_batch_detail,
)
from processing_inventory.domain.snapshots import BatchSnapshot
from processing_inventory.schemas.processing_batch import (
    Pagination,
    ProcessingBatchDetail,
    ProcessingBatchListResponse,
    ProcessingBatchQuery,
)

logger = logging.getLogger(__name__)

LIST_KEY_PREFIX = "processing-batches:list:"
DETAIL_KEY_PREFIX = "processing-batch:"

EntryT = TypeVar("EntryT", bound=BaseModel)


class ListCacheEntry(BaseModel):
    """One page of a list query, as raw snapshots plus post-filter counts."""

    snapshots: list[BatchSnapshot]
    total_count: int


class ProcessingBatchCache:
    """Owns cache key shape, TTL, read-through and invalidation for batches."""

    def __init__(self, store: CacheStore, ttl_seconds: int = settings.cache_ttl_seconds):
        self.store = store
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def list_key(query: ProcessingBatchQuery) -> str:
        return f"{LIST_KEY_PREFIX}{query.model_dump_json(by_alias=True)}"

    @staticmethod
    def detail_key(batch_id: int) -> str:
        return f"{DETAIL_KEY_PREFIX}{batch_id}"

    # ------------------------------------------------------------------ #
    # Read path                                                            #
    # ------------------------------------------------------------------ #

    async def read_detail(
        self,
        batch_id: int,
        load: Callable[[], Awaitable[Optional[BatchSnapshot]]],
    ) -> Optional[ProcessingBatchDetail]:
        """
        Return the detail view of a batch, or None when it does not exist.

        On a miss the snapshot comes from ``load`` and is stored for later
        reads. Absent batches are not cached.
        """
        key = self.detail_key(batch_id)
        snapshot = await self._read(key, BatchSnapshot)

        if snapshot is None:
            snapshot = await load()
            if snapshot is None:
                return None
            await self._write(key, snapshot)

        return aggregate_batch_detail(snapshot)

    async def read_list(
        self,
        query: ProcessingBatchQuery,
        load: Callable[[], Awaitable[ListCacheEntry]],
    ) -> ProcessingBatchListResponse:
        """Return one page of batch summaries for ``query``."""
        key = self.list_key(query)
        entry = await self._read(key, ListCacheEntry)

        if entry is None:
            entry = await load()
            await self._write(key, entry)

        return ProcessingBatchListResponse(
            processing_batches=[aggregate_batch(s) for s in entry.snapshots],
            pagination=Pagination(
                page=query.page,
                limit=query.limit,
                total_count=entry.total_count,
                total_pages=math.ceil(entry.total_count / query.limit),
            ),
        )

    # ------------------------------------------------------------------ #
    # Write path                                                           #
    # ------------------------------------------------------------------ #

    async def invalidate(self, batch_id: Optional[int] = None) -> None:
        """
        Drop every cached list page and, when given, the batch's detail entry.

        Best-effort: a failure leaves stale entries alive until their TTL.
        """
        try:
            keys = await self.store.keys(f"{LIST_KEY_PREFIX}*")
            if batch_id is not None:
                keys.append(self.detail_key(batch_id))
            if keys:
                await self.store.delete(*keys)
        except CacheUnavailableError:
            logger.warning(
                "Cache invalidation failed (batch_id=%s); entries expire after %ss",
                batch_id,
                self.ttl_seconds,
                exc_info=True,
            )

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    async def _read(self, key: str, model: type[EntryT]) -> Optional[EntryT]:
        try:
            raw = await self.store.get(key)
        except CacheEntryCorruptError:
            logger.warning("Discarding undecodable cache entry %s", key, exc_info=True)
            await self._discard(key)
            return None
        except CacheUnavailableError:
            logger.warning("Cache read failed for %s, falling back to database", key, exc_info=True)
            return None

        if raw is None:
            return None

        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding undecodable cache entry %s", key, exc_info=True)
            await self._discard(key)
            return None

    async def _write(self, key: str, value: BaseModel) -> None:
        try:
            await self.store.set(key, value.model_dump_json(), self.ttl_seconds)
        except CacheUnavailableError:
            logger.warning("Cache write failed for %s", key, exc_info=True)

    async def _discard(self, key: str) -> None:
        try:
            await self.store.delete(key)
        except CacheUnavailableError:
            logger.warning("Could not delete cache entry %s", key, exc_info=True)
