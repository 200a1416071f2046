"""Business logic layer for processing batch lifecycle and reads."""

import logging
from datetime import date, datetime
from typing import Awaitable, Callable, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.auth import AuthContext
from processing_inventory.cache.processing_batch_cache import ListCacheEntry, ProcessingBatchCache
from processing_inventory.database import run_in_transaction
from processing_inventory.domain.exceptions import (
    BatchNotFoundError,
    EmptyProcurementSetError,
    InvalidProcessingDateError,
    NonPositiveQuantityError,
    ProcurementMismatchError,
)
from processing_inventory.domain.models import ProcessingBatch, ProcessingStage, ProcessingStageStatus
from processing_inventory.domain.services.batch_aggregator import aggregate_batch_detail
from processing_inventory.domain.services.batch_code import generate_batch_code
from processing_inventory.domain.services.status_resolver import resolve_stage
from processing_inventory.domain.snapshots import BatchSnapshot
from processing_inventory.repositories.processing_batch_repository import ProcessingBatchRepository
from processing_inventory.schemas.processing_batch import (
    ProcessingBatchCreateRequest,
    ProcessingBatchDetail,
    ProcessingBatchListResponse,
    ProcessingBatchQuery,
)

logger = logging.getLogger(__name__)

BatchCodeGenerator = Callable[[str, int, date], Awaitable[str]]


def parse_processing_date(value: str) -> datetime:
    """Parse an ISO 8601 date or timestamp; a trailing Z means UTC."""
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise InvalidProcessingDateError(value) from e


class ProcessingBatchService:
    """Service layer for processing batch business logic."""

    def __init__(
        self,
        session: AsyncSession,
        cache: ProcessingBatchCache,
        generate_code: Optional[BatchCodeGenerator] = None,
    ):
        self.session = session
        self.repository = ProcessingBatchRepository(session)
        self.cache = cache
        self.generate_code = generate_code or self._generate_code

    async def _generate_code(self, crop: str, lot_no: int, day: date) -> str:
        return await generate_batch_code(self.repository, crop, lot_no, day)

    async def create_batch(
        self,
        request: ProcessingBatchCreateRequest,
        auth: AuthContext,
    ) -> ProcessingBatchDetail:
        """
        Create a batch from unbatched procurements together with its P1 stage.

        Validation happens before any write. The batch insert, procurement
        linking and first stage insert commit together or not at all.

        Raises:
            EmptyProcurementSetError: No procurement ids given
            ProcurementMismatchError: Unknown, mismatched or already batched procurements
            NonPositiveQuantityError: Procurement quantities sum to <= 0
            InvalidProcessingDateError: First stage date can't be parsed
            TransactionTimeoutError: The atomic write ran out of time
        """
        procurement_ids = list(dict.fromkeys(request.procurement_ids))
        if not procurement_ids:
            raise EmptyProcurementSetError()

        procurements = await self.repository.find_unbatched_procurements(
            procurement_ids, crop=request.crop, lot_no=request.lot_no
        )
        if len(procurements) != len(procurement_ids):
            raise ProcurementMismatchError(requested=len(procurement_ids), matched=len(procurements))

        initial_quantity = sum(p.quantity for p in procurements)
        if initial_quantity <= 0:
            raise NonPositiveQuantityError(initial_quantity)

        stage_details = request.first_stage_details
        date_of_processing = parse_processing_date(stage_details.date_of_processing)

        batch_code = await self.generate_code(request.crop, request.lot_no, date_of_processing.date())

        batch = ProcessingBatch(
            batch_code=batch_code,
            crop=request.crop,
            lot_no=request.lot_no,
            initial_batch_quantity=initial_quantity,
            created_by_id=auth.user_id,
        )
        first_stage = ProcessingStage(
            processing_count=1,
            status=ProcessingStageStatus.IN_PROGRESS,
            process_method=stage_details.process_method,
            date_of_processing=date_of_processing,
            done_by=stage_details.done_by,
            initial_quantity=initial_quantity,
            created_by_id=auth.user_id,
        )

        created = await run_in_transaction(
            self.session,
            "create_processing_batch",
            lambda: self.repository.add_with_first_stage(batch, first_stage, procurement_ids),
        )
        snapshot = BatchSnapshot.from_row(created)
        logger.info(
            "Created processing batch %s (%s) from %d procurements",
            snapshot.id,
            snapshot.batch_code,
            len(procurement_ids),
        )

        await self.cache.invalidate()
        return aggregate_batch_detail(snapshot)

    async def list_batches(self, query: ProcessingBatchQuery) -> ProcessingBatchListResponse:
        """
        List batch summaries filtered by search text and derived status.

        Every candidate is resolved before the status filter and pagination
        apply, since the effective status is not stored.
        """

        async def load() -> ListCacheEntry:
            candidates = await self.repository.list_snapshots(search=query.search)
            if query.status is not None:
                candidates = [
                    c for c in candidates if resolve_stage(c.latest_stage()).status == query.status
                ]
            start = (query.page - 1) * query.limit
            page = candidates[start : start + query.limit]
            return ListCacheEntry(
                snapshots=[c.for_listing() for c in page],
                total_count=len(candidates),
            )

        return await self.cache.read_list(query, load)

    async def get_batch(self, batch_id: int) -> ProcessingBatchDetail:
        """
        Retrieve the detail view of a batch.

        Raises:
            BatchNotFoundError: If the batch doesn't exist
        """
        detail = await self.cache.read_detail(
            batch_id, lambda: self.repository.get_snapshot(batch_id)
        )
        if detail is None:
            raise BatchNotFoundError(batch_id=batch_id)
        return detail

    async def delete_batch(self, batch_id: int) -> str:
        """
        Delete a batch, leaving its procurements in place but unbatched.

        Returns:
            The deleted batch's code

        Raises:
            BatchNotFoundError: Batch doesn't exist or was deleted concurrently
            TransactionTimeoutError: The atomic write ran out of time
        """
        batch = await self.repository.get(batch_id)
        batch_code = batch.batch_code

        await run_in_transaction(
            self.session,
            "delete_processing_batch",
            lambda: self.repository.delete(batch_id),
        )
        logger.info("Deleted processing batch %s (%s)", batch_id, batch_code)

        await self.cache.invalidate(batch_id)
        return batch_code
