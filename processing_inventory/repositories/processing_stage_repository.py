"""Data access layer for processing stages, drying entries and sales."""

from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import selectinload
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.domain.exceptions import SaleNotFoundError, StageNotFoundError
from processing_inventory.domain.models import DryingEntry, ProcessingStage, Sale

_STAGE_LOAD = (
    selectinload(ProcessingStage.drying_entries),  # type: ignore[arg-type]
    selectinload(ProcessingStage.sales),  # type: ignore[arg-type]
)


class ProcessingStageRepository:
    """Repository for stage-level database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_loaded(self, stage_id: int) -> ProcessingStage:
        """
        Retrieve a stage with its drying entries and sales.

        Raises:
            StageNotFoundError: If the stage doesn't exist
        """
        statement = (
            select(ProcessingStage)
            .where(ProcessingStage.id == stage_id)
            .options(*_STAGE_LOAD)
            .execution_options(populate_existing=True)
        )
        stage = (await self.session.exec(statement)).first()
        if not stage:
            raise StageNotFoundError(stage_id=stage_id)
        return stage

    async def get_latest_for_batch(self, batch_id: int) -> Optional[ProcessingStage]:
        """Stage with the highest processing count in the batch, if any."""
        statement = (
            select(ProcessingStage)
            .where(ProcessingStage.processing_batch_id == batch_id)
            .options(*_STAGE_LOAD)
            .order_by(col(ProcessingStage.processing_count).desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return (await self.session.exec(statement)).first()

    async def add(self, stage: ProcessingStage) -> ProcessingStage:
        self.session.add(stage)
        await self.session.flush()
        return stage

    async def drying_day_exists(self, stage_id: int, day: int) -> bool:
        statement = select(DryingEntry.id).where(
            DryingEntry.processing_stage_id == stage_id,
            DryingEntry.day == day,
        )
        return (await self.session.exec(statement)).first() is not None

    async def add_drying_entry(self, entry: DryingEntry) -> DryingEntry:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_drying_entries(self, stage_id: int) -> List[DryingEntry]:
        """Drying entries of a stage in ascending day order."""
        statement = (
            select(DryingEntry)
            .where(DryingEntry.processing_stage_id == stage_id)
            .order_by(col(DryingEntry.day).asc())
        )
        return list((await self.session.exec(statement)).all())

    # ------------------------------------------------------------------ #
    # Sales                                                                #
    # ------------------------------------------------------------------ #

    async def add_sale(self, sale: Sale) -> Sale:
        self.session.add(sale)
        await self.session.flush()
        return sale

    async def get_sale(self, sale_id: int) -> Sale:
        """
        Retrieve a sale by ID.

        Raises:
            SaleNotFoundError: If the sale doesn't exist
        """
        sale = await self.session.get(Sale, sale_id)
        if not sale:
            raise SaleNotFoundError(sale_id=sale_id)
        return sale

    async def delete_sale(self, sale_id: int) -> None:
        await self.session.execute(
            delete(Sale)
            .where(col(Sale.id) == sale_id)
            .execution_options(synchronize_session=False)
        )
