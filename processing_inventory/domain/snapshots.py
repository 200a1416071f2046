"""Immutable read snapshots of a processing batch and its history.

Snapshots hold facts only (no derived status or quantities). They are what
the resolver consumes and what the cache stores, so a cached entry can always
be re-derived with the current resolution rules.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from processing_inventory.domain.models import (
    DryingEntry,
    ProcessingBatch,
    ProcessingStage,
    ProcessingStageStatus,
    Procurement,
    Sale,
)


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class DryingEntrySnapshot(_Snapshot):
    id: int
    day: int
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    moisture: Optional[float] = None
    current_quantity: float
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, entry: DryingEntry) -> DryingEntrySnapshot:
        return cls.model_validate(entry, from_attributes=True)


class SaleSnapshot(_Snapshot):
    id: int
    processing_stage_id: int
    processing_count: Optional[int] = None
    quantity_sold: float
    date_of_sale: datetime

    @classmethod
    def from_row(cls, sale: Sale, processing_count: Optional[int] = None) -> SaleSnapshot:
        return cls(
            id=sale.id,
            processing_stage_id=sale.processing_stage_id,
            processing_count=processing_count,
            quantity_sold=sale.quantity_sold,
            date_of_sale=sale.date_of_sale,
        )


class StageSnapshot(_Snapshot):
    id: int
    processing_count: int
    status: ProcessingStageStatus
    process_method: str
    date_of_processing: datetime
    date_of_completion: Optional[datetime] = None
    done_by: str
    initial_quantity: float
    quantity_after_process: Optional[float] = None
    drying_entries: list[DryingEntrySnapshot] = []
    sales: list[SaleSnapshot] = []

    @classmethod
    def from_row(cls, stage: ProcessingStage) -> StageSnapshot:
        return cls(
            id=stage.id,
            processing_count=stage.processing_count,
            status=stage.status,
            process_method=stage.process_method,
            date_of_processing=stage.date_of_processing,
            date_of_completion=stage.date_of_completion,
            done_by=stage.done_by,
            initial_quantity=stage.initial_quantity,
            quantity_after_process=stage.quantity_after_process,
            drying_entries=sorted(
                (DryingEntrySnapshot.from_row(e) for e in stage.drying_entries),
                key=lambda e: e.day,
            ),
            sales=[SaleSnapshot.from_row(s, stage.processing_count) for s in stage.sales],
        )

    def latest_drying_entry(self) -> Optional[DryingEntrySnapshot]:
        """Entry with the highest day index, if any."""
        if not self.drying_entries:
            return None
        return max(self.drying_entries, key=lambda e: e.day)


class ProcurementSnapshot(_Snapshot):
    id: int
    procurement_number: str
    crop: str
    lot_no: int
    quantity: float
    date_of_procurement: datetime

    @classmethod
    def from_row(cls, procurement: Procurement) -> ProcurementSnapshot:
        return cls.model_validate(procurement, from_attributes=True)


class BatchSnapshot(_Snapshot):
    id: int
    batch_code: str
    crop: str
    lot_no: int
    initial_batch_quantity: float
    created_at: datetime
    created_by_id: int
    processing_stages: list[StageSnapshot] = []
    sales: list[SaleSnapshot] = []
    procurements: list[ProcurementSnapshot] = []

    @classmethod
    def from_row(cls, batch: ProcessingBatch, include_procurements: bool = True) -> BatchSnapshot:
        """
        Build a snapshot from a batch whose relationships are already loaded.

        Stages are ordered by processing count ascending and batch-level sales
        newest first.
        """
        stages = sorted(
            (StageSnapshot.from_row(s) for s in batch.processing_stages),
            key=lambda s: s.processing_count,
        )
        count_by_stage = {s.id: s.processing_count for s in stages}
        sales = sorted(
            (SaleSnapshot.from_row(s, count_by_stage.get(s.processing_stage_id)) for s in batch.sales),
            key=lambda s: s.date_of_sale,
            reverse=True,
        )
        procurements = (
            [ProcurementSnapshot.from_row(p) for p in batch.procurements]
            if include_procurements
            else []
        )
        return cls(
            id=batch.id,
            batch_code=batch.batch_code,
            crop=batch.crop,
            lot_no=batch.lot_no,
            initial_batch_quantity=batch.initial_batch_quantity,
            created_at=batch.created_at,
            created_by_id=batch.created_by_id,
            processing_stages=stages,
            sales=sales,
            procurements=procurements,
        )

    def latest_stage(self) -> Optional[StageSnapshot]:
        """Stage with the highest processing count, if any."""
        if not self.processing_stages:
            return None
        return max(self.processing_stages, key=lambda s: s.processing_count)

    def for_listing(self) -> BatchSnapshot:
        """
        Trim the snapshot to what a list row needs.

        Keeps only the latest stage with its most recent drying entry and its
        sales, plus the batch-level sales. Aggregating the trimmed snapshot
        gives the same summary as aggregating the full one.
        """
        latest = self.latest_stage()
        stages: list[StageSnapshot] = []
        if latest is not None:
            last_entry = latest.latest_drying_entry()
            stages = [
                latest.model_copy(
                    update={"drying_entries": [last_entry] if last_entry else []}
                )
            ]
        return self.model_copy(update={"processing_stages": stages, "procurements": []})
