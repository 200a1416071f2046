"""Business logic for stage transitions, drying entries and sales."""

import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.auth import AuthContext
from processing_inventory.cache.processing_batch_cache import ProcessingBatchCache
from processing_inventory.database import run_in_transaction
from processing_inventory.domain.exceptions import (
    DuplicateDryingDayError,
    InsufficientStageQuantityError,
    InvalidStageTransitionError,
)
from processing_inventory.domain.models import DryingEntry, ProcessingStage, ProcessingStageStatus, Sale
from processing_inventory.domain.services.batch_service import parse_processing_date
from processing_inventory.domain.services.status_resolver import EffectiveStatus, resolve_stage
from processing_inventory.domain.snapshots import DryingEntrySnapshot, StageSnapshot
from processing_inventory.repositories.processing_batch_repository import ProcessingBatchRepository
from processing_inventory.repositories.processing_stage_repository import ProcessingStageRepository
from processing_inventory.schemas.processing_stage import (
    DryingEntryCreateRequest,
    FinalizeStageRequest,
    NextStageRequest,
    SaleCreateRequest,
)

logger = logging.getLogger(__name__)


def _require_in_progress(stage: ProcessingStage, action: str) -> None:
    if stage.status != ProcessingStageStatus.IN_PROGRESS:
        raise InvalidStageTransitionError(
            stage.id,
            f"Cannot {action} stage {stage.id}: status is {stage.status.value}, expected IN_PROGRESS",
        )


class ProcessingStageService:
    """
    Service layer for everything recorded against a stage.

    Each mutation commits on its own, stamps the owning batch's updated_at
    in the same unit, and then drops the list caches and that batch's detail
    entry.
    """

    def __init__(self, session: AsyncSession, cache: ProcessingBatchCache):
        self.session = session
        self.batches = ProcessingBatchRepository(session)
        self.repository = ProcessingStageRepository(session)
        self.cache = cache

    async def start_next_stage(
        self,
        batch_id: int,
        request: NextStageRequest,
        auth: AuthContext,
    ) -> StageSnapshot:
        """
        Open stage N+1 of a batch from what remains of stage N.

        The latest stage must be FINISHED with quantity left; the new stage
        starts IN_PROGRESS with that remaining quantity.
        """
        await self.batches.get(batch_id)
        date_of_processing = parse_processing_date(request.date_of_processing)

        latest = await self.repository.get_latest_for_batch(batch_id)
        if latest is None:
            raise InvalidStageTransitionError(None, f"Batch {batch_id} has no stages to continue from")

        resolution = resolve_stage(StageSnapshot.from_row(latest))
        if resolution.status != EffectiveStatus.FINISHED:
            raise InvalidStageTransitionError(
                latest.id,
                f"Latest stage P{latest.processing_count} is {resolution.status.value}; "
                "a new stage needs a finished stage with quantity remaining",
            )

        next_count = latest.processing_count + 1
        stage = ProcessingStage(
            processing_batch_id=batch_id,
            processing_count=next_count,
            status=ProcessingStageStatus.IN_PROGRESS,
            process_method=request.process_method,
            date_of_processing=date_of_processing,
            done_by=request.done_by,
            initial_quantity=resolution.net_available_quantity,
            created_by_id=auth.user_id,
        )

        async def work() -> StageSnapshot:
            await self.repository.add(stage)
            await self.batches.touch(batch_id)
            return StageSnapshot.from_row(await self.repository.get_loaded(stage.id))

        try:
            snapshot = await run_in_transaction(self.session, "start_next_stage", work)
        except IntegrityError as e:
            # Another request opened P{next_count} between the check and the insert
            raise InvalidStageTransitionError(
                None, f"Stage P{next_count} of batch {batch_id} was already started"
            ) from e
        logger.info("Started stage P%d of batch %s", snapshot.processing_count, batch_id)

        await self.cache.invalidate(batch_id)
        return snapshot

    async def finalize_stage(self, stage_id: int, request: FinalizeStageRequest) -> StageSnapshot:
        """Mark an in-progress stage FINISHED with its output quantity."""
        stage = await self.repository.get_loaded(stage_id)
        _require_in_progress(stage, "finalize")
        date_of_completion = parse_processing_date(request.date_of_completion)

        async def work() -> StageSnapshot:
            stage.status = ProcessingStageStatus.FINISHED
            stage.quantity_after_process = request.quantity_after_process
            stage.date_of_completion = date_of_completion
            self.session.add(stage)
            await self.session.flush()
            await self.batches.touch(stage.processing_batch_id)
            return StageSnapshot.from_row(await self.repository.get_loaded(stage_id))

        snapshot = await run_in_transaction(self.session, "finalize_stage", work)
        logger.info("Finalized stage %s with %s remaining", stage_id, request.quantity_after_process)

        await self.cache.invalidate(stage.processing_batch_id)
        return snapshot

    async def cancel_stage(self, stage_id: int) -> StageSnapshot:
        """Mark an in-progress stage CANCELLED."""
        stage = await self.repository.get_loaded(stage_id)
        _require_in_progress(stage, "cancel")

        async def work() -> StageSnapshot:
            stage.status = ProcessingStageStatus.CANCELLED
            self.session.add(stage)
            await self.session.flush()
            await self.batches.touch(stage.processing_batch_id)
            return StageSnapshot.from_row(await self.repository.get_loaded(stage_id))

        snapshot = await run_in_transaction(self.session, "cancel_stage", work)
        logger.info("Cancelled stage %s", stage_id)

        await self.cache.invalidate(stage.processing_batch_id)
        return snapshot

    async def record_drying_entry(
        self,
        stage_id: int,
        request: DryingEntryCreateRequest,
    ) -> DryingEntrySnapshot:
        """Add a daily measurement to an in-progress stage (one per day)."""
        stage = await self.repository.get_loaded(stage_id)
        _require_in_progress(stage, "record drying data on")
        if await self.repository.drying_day_exists(stage_id, request.day):
            raise DuplicateDryingDayError(stage_id=stage_id, day=request.day)

        batch_id = stage.processing_batch_id
        entry = DryingEntry(processing_stage_id=stage_id, **request.model_dump())

        async def work() -> DryingEntrySnapshot:
            snapshot = DryingEntrySnapshot.from_row(await self.repository.add_drying_entry(entry))
            await self.batches.touch(batch_id)
            return snapshot

        try:
            snapshot = await run_in_transaction(self.session, "record_drying_entry", work)
        except IntegrityError as e:
            # Same day recorded by a concurrent request after the check above
            raise DuplicateDryingDayError(stage_id=stage_id, day=request.day) from e

        await self.cache.invalidate(batch_id)
        return snapshot

    async def list_drying_entries(self, stage_id: int) -> List[DryingEntrySnapshot]:
        await self.repository.get_loaded(stage_id)
        entries = await self.repository.list_drying_entries(stage_id)
        return [DryingEntrySnapshot.from_row(e) for e in entries]

    # ------------------------------------------------------------------ #
    # Sales                                                                #
    # ------------------------------------------------------------------ #

    async def record_sale(self, request: SaleCreateRequest, auth: AuthContext) -> Sale:
        """
        Sell quantity out of a finished stage.

        The sale may target any finished stage of the batch, but never more
        than that stage has left.
        """
        stage = await self.repository.get_loaded(request.processing_stage_id)
        if stage.status != ProcessingStageStatus.FINISHED:
            raise InvalidStageTransitionError(
                stage.id,
                f"Cannot sell from stage {stage.id}: status is {stage.status.value}, expected FINISHED",
            )

        available = resolve_stage(StageSnapshot.from_row(stage)).net_available_quantity
        if request.quantity_sold > available:
            raise InsufficientStageQuantityError(
                stage_id=stage.id,
                available=available,
                requested=request.quantity_sold,
            )

        sale = Sale(
            processing_batch_id=stage.processing_batch_id,
            processing_stage_id=stage.id,
            quantity_sold=request.quantity_sold,
            date_of_sale=request.date_of_sale,
            created_by_id=auth.user_id,
        )

        async def work() -> Sale:
            await self.repository.add_sale(sale)
            await self.batches.touch(sale.processing_batch_id)
            return sale

        sale = await run_in_transaction(self.session, "record_sale", work)
        logger.info("Recorded sale %s of %s from stage %s", sale.id, sale.quantity_sold, stage.id)

        await self.cache.invalidate(stage.processing_batch_id)
        return sale

    async def delete_sale(self, sale_id: int) -> None:
        sale = await self.repository.get_sale(sale_id)
        batch_id = sale.processing_batch_id

        async def work() -> None:
            await self.repository.delete_sale(sale_id)
            await self.batches.touch(batch_id)

        await run_in_transaction(self.session, "delete_sale", work)
        logger.info("Deleted sale %s of batch %s", sale_id, batch_id)

        await self.cache.invalidate(batch_id)
