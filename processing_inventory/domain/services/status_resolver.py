"""Effective status and net available quantity of a processing stage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from processing_inventory.domain.models import ProcessingStageStatus
from processing_inventory.domain.snapshots import StageSnapshot


class EffectiveStatus(str, Enum):
    """
    Status shown to callers.

    Mirrors ProcessingStageStatus and adds two values that only exist in
    computed output and are never persisted.
    """

    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"
    SOLD_OUT = "SOLD_OUT"
    NO_STAGES = "NO_STAGES"


@dataclass(frozen=True)
class StageResolution:
    status: EffectiveStatus
    net_available_quantity: float


def quantity_sold(stage: StageSnapshot) -> float:
    """Total quantity sold out of this stage."""
    return sum(sale.quantity_sold for sale in stage.sales)


def resolve_stage(stage: Optional[StageSnapshot]) -> StageResolution:
    """
    Resolve the effective status and remaining quantity of a stage.

    Pass the latest stage of a batch, or None when the batch has no stages.

    - IN_PROGRESS: quantity is the most recent drying reading, falling back
      to the stage's initial quantity.
    - FINISHED: quantity after process minus everything sold from the stage;
      SOLD_OUT once that reaches zero or below.
    - CANCELLED: nothing is available, whatever was sold.
    """
    if stage is None:
        return StageResolution(EffectiveStatus.NO_STAGES, 0.0)

    if stage.status == ProcessingStageStatus.IN_PROGRESS:
        last_entry = stage.latest_drying_entry()
        available = last_entry.current_quantity if last_entry else stage.initial_quantity
        return StageResolution(EffectiveStatus.IN_PROGRESS, available)

    if stage.status == ProcessingStageStatus.FINISHED:
        available = (stage.quantity_after_process or 0.0) - quantity_sold(stage)
        if available <= 0:
            return StageResolution(EffectiveStatus.SOLD_OUT, available)
        return StageResolution(EffectiveStatus.FINISHED, available)

    return StageResolution(EffectiveStatus.CANCELLED, 0.0)
