"""Data access layer for processing batch operations."""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, update
from sqlalchemy.orm import selectinload
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.domain.exceptions import BatchNotFoundError, ProcurementMismatchError
from processing_inventory.domain.models import (
    DryingEntry,
    ProcessingBatch,
    ProcessingStage,
    Procurement,
    Sale,
)
from processing_inventory.domain.snapshots import BatchSnapshot

# Everything a batch snapshot is built from
_SNAPSHOT_LOAD = (
    selectinload(ProcessingBatch.processing_stages).selectinload(ProcessingStage.drying_entries),  # type: ignore[arg-type]
    selectinload(ProcessingBatch.processing_stages).selectinload(ProcessingStage.sales),  # type: ignore[arg-type]
    selectinload(ProcessingBatch.sales),  # type: ignore[arg-type]
    selectinload(ProcessingBatch.procurements),  # type: ignore[arg-type]
)

# List rows never carry procurements
_LISTING_LOAD = _SNAPSHOT_LOAD[:-1]


class ProcessingBatchRepository:
    """Repository for processing batch database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_unbatched_procurements(
        self,
        procurement_ids: Sequence[int],
        crop: str,
        lot_no: int,
    ) -> List[Procurement]:
        """
        Fetch the requested procurements that can go into a new batch.

        A procurement matches only when its id was requested, its crop equals
        ``crop`` (case-insensitive), its lot equals ``lot_no`` and it is not
        attached to a batch yet.
        """
        statement = select(Procurement).where(
            col(Procurement.id).in_(procurement_ids),
            func.lower(Procurement.crop) == crop.lower(),
            Procurement.lot_no == lot_no,
            col(Procurement.processing_batch_id).is_(None),
        )
        return list((await self.session.exec(statement)).all())

    async def batch_code_exists(self, batch_code: str) -> bool:
        statement = select(ProcessingBatch.id).where(ProcessingBatch.batch_code == batch_code)
        return (await self.session.exec(statement)).first() is not None

    async def add_with_first_stage(
        self,
        batch: ProcessingBatch,
        first_stage: ProcessingStage,
        procurement_ids: Sequence[int],
    ) -> ProcessingBatch:
        """
        Insert a batch, link its procurements and insert its first stage.

        Does not commit; callers run this inside ``run_in_transaction``.

        Returns:
            The batch re-read with its stages loaded
        """
        self.session.add(batch)
        await self.session.flush()

        # Only still-unbatched rows are claimed; a concurrent create that linked
        # one of them first makes the row count come up short
        result = await self.session.execute(
            update(Procurement)
            .where(
                col(Procurement.id).in_(procurement_ids),
                col(Procurement.processing_batch_id).is_(None),
            )
            .values(processing_batch_id=batch.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(procurement_ids):
            raise ProcurementMismatchError(requested=len(procurement_ids), matched=result.rowcount)

        first_stage.processing_batch_id = batch.id
        self.session.add(first_stage)
        await self.session.flush()

        return await self.get_loaded(batch.id)

    async def touch(self, batch_id: int) -> None:
        """Stamp ``updated_at`` after a write to the batch's stages, drying entries or sales."""
        await self.session.execute(
            update(ProcessingBatch)
            .where(col(ProcessingBatch.id) == batch_id)
            .values(updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )

    async def get(self, batch_id: int) -> ProcessingBatch:
        """
        Retrieve a batch row without its relationships.

        Raises:
            BatchNotFoundError: If the batch doesn't exist
        """
        batch = await self.session.get(ProcessingBatch, batch_id)
        if not batch:
            raise BatchNotFoundError(batch_id=batch_id)
        return batch

    async def get_loaded(self, batch_id: int) -> ProcessingBatch:
        """
        Retrieve a batch with stages, drying entries, sales and procurements.

        Raises:
            BatchNotFoundError: If the batch doesn't exist
        """
        statement = (
            select(ProcessingBatch)
            .where(ProcessingBatch.id == batch_id)
            .options(*_SNAPSHOT_LOAD)
            .execution_options(populate_existing=True)
        )
        batch = (await self.session.exec(statement)).first()
        if not batch:
            raise BatchNotFoundError(batch_id=batch_id)
        return batch

    async def get_snapshot(self, batch_id: int) -> Optional[BatchSnapshot]:
        """Full snapshot of a batch, or None if it doesn't exist."""
        try:
            batch = await self.get_loaded(batch_id)
        except BatchNotFoundError:
            return None
        return BatchSnapshot.from_row(batch)

    async def list_snapshots(self, search: Optional[str] = None) -> List[BatchSnapshot]:
        """
        Snapshots of every batch matching ``search``, newest first.

        ``search`` matches the batch code or the crop, case-insensitive. No
        pagination is pushed down: status filtering happens on derived values
        after this call.
        """
        statement = select(ProcessingBatch).options(*_LISTING_LOAD)
        if search:
            statement = statement.where(
                col(ProcessingBatch.batch_code).icontains(search, autoescape=True)
                | col(ProcessingBatch.crop).icontains(search, autoescape=True)
            )
        statement = statement.order_by(col(ProcessingBatch.created_at).desc()).execution_options(
            populate_existing=True
        )

        batches = (await self.session.exec(statement)).all()
        return [BatchSnapshot.from_row(b, include_procurements=False) for b in batches]

    async def delete(self, batch_id: int) -> None:
        """
        Detach the batch's procurements and delete the batch with its history.

        Stages, drying entries and sales go with the batch. Procurements are
        kept and become unbatched. Does not commit.

        Raises:
            BatchNotFoundError: The batch row was already gone
        """
        await self.session.execute(
            update(Procurement)
            .where(col(Procurement.processing_batch_id) == batch_id)
            .values(processing_batch_id=None)
            .execution_options(synchronize_session=False)
        )

        stage_ids = select(ProcessingStage.id).where(ProcessingStage.processing_batch_id == batch_id)
        for statement in (
            delete(Sale).where(col(Sale.processing_batch_id) == batch_id),
            delete(DryingEntry).where(col(DryingEntry.processing_stage_id).in_(stage_ids)),
            delete(ProcessingStage).where(col(ProcessingStage.processing_batch_id) == batch_id),
        ):
            await self.session.execute(statement.execution_options(synchronize_session=False))

        result = await self.session.execute(
            delete(ProcessingBatch)
            .where(col(ProcessingBatch.id) == batch_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise BatchNotFoundError(batch_id=batch_id, already_deleted=True)
