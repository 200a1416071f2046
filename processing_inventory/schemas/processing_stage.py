"""Pydantic schemas for processing stage, drying entry and sale requests."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from processing_inventory.schemas.common import CamelModel


class NextStageRequest(CamelModel):
    """Request schema for starting the next stage of a batch."""

    process_method: str = Field(min_length=1, max_length=50, examples=["dry"])
    date_of_processing: str = Field(description="ISO 8601 date or timestamp")
    done_by: str = Field(min_length=1, max_length=100)


class FinalizeStageRequest(CamelModel):
    """Request schema for finishing an in-progress stage."""

    quantity_after_process: float = Field(gt=0, description="Quantity left after processing")
    date_of_completion: str = Field(description="ISO 8601 date or timestamp")


class DryingEntryCreateRequest(CamelModel):
    """Request schema for a daily drying measurement."""

    day: int = Field(ge=1)
    temperature: Optional[float] = None
    humidity: Optional[float] = Field(default=None, ge=0, le=100)
    moisture: Optional[float] = Field(default=None, ge=0, le=100)
    current_quantity: float = Field(ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class SaleCreateRequest(CamelModel):
    """Request schema for selling quantity out of a finished stage."""

    processing_stage_id: int
    quantity_sold: float = Field(gt=0)
    date_of_sale: datetime


class SaleResponse(CamelModel):
    id: int
    processing_batch_id: int
    processing_stage_id: int
    quantity_sold: float
    date_of_sale: datetime
    created_by_id: int
