"""Compose externally visible batch views from batch snapshots."""

from typing import Optional

from processing_inventory.domain.services.status_resolver import StageResolution, resolve_stage
from processing_inventory.domain.snapshots import BatchSnapshot, StageSnapshot
from processing_inventory.schemas.processing_batch import (
    LatestStageSummary,
    ProcessingBatchDetail,
    ProcessingBatchSummary,
)


def total_quantity_sold(snapshot: BatchSnapshot) -> float:
    """Sum of every sale on the batch, whichever stage it came from."""
    return sum(sale.quantity_sold for sale in snapshot.sales)


def _latest_stage_summary(
    stage: Optional[StageSnapshot],
    resolution: StageResolution,
) -> Optional[LatestStageSummary]:
    if stage is None:
        return None

    last_entry = stage.latest_drying_entry()
    return LatestStageSummary(
        id=stage.id,
        processing_count=stage.processing_count,
        status=resolution.status,
        process_method=stage.process_method,
        date_of_processing=stage.date_of_processing,
        done_by=stage.done_by,
        initial_quantity=stage.initial_quantity,
        quantity_after_process=stage.quantity_after_process,
        last_drying_quantity=last_entry.current_quantity if last_entry else None,
    )


def aggregate_batch(snapshot: BatchSnapshot) -> ProcessingBatchSummary:
    """
    Build the summary view of a batch.

    Only the latest stage (highest processing count) feeds the status and the
    net available quantity; the sold total covers all stages.
    """
    latest = snapshot.latest_stage()
    resolution = resolve_stage(latest)

    return ProcessingBatchSummary(
        id=snapshot.id,
        batch_code=snapshot.batch_code,
        crop=snapshot.crop,
        lot_no=snapshot.lot_no,
        initial_batch_quantity=snapshot.initial_batch_quantity,
        created_at=snapshot.created_at,
        latest_stage_summary=_latest_stage_summary(latest, resolution),
        total_quantity_sold_from_batch=total_quantity_sold(snapshot),
        net_available_quantity=resolution.net_available_quantity,
    )


def aggregate_batch_detail(snapshot: BatchSnapshot) -> ProcessingBatchDetail:
    """Build the detail view: the summary plus procurements, stages and sales."""
    summary = aggregate_batch(snapshot)

    return ProcessingBatchDetail.model_validate(
        {
            **summary.model_dump(),
            "created_by_id": snapshot.created_by_id,
            "procurements": snapshot.procurements,
            "processing_stages": snapshot.processing_stages,
            "sales": snapshot.sales,
        },
        from_attributes=True,
    )
