"""Pydantic schemas for processing batch API requests and responses."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from processing_inventory.domain.models import ProcessingStageStatus
from processing_inventory.domain.services.status_resolver import EffectiveStatus
from processing_inventory.schemas.common import CamelModel


class FirstStageDetails(CamelModel):
    """Details of the P1 stage created together with a batch."""

    process_method: str = Field(min_length=1, max_length=50, examples=["wet"])
    date_of_processing: str = Field(
        description="ISO 8601 date or timestamp the stage started",
        examples=["2025-05-10T08:00:00Z"],
    )
    done_by: str = Field(min_length=1, max_length=100)


class ProcessingBatchCreateRequest(CamelModel):
    """Request schema for creating a processing batch."""

    crop: str = Field(min_length=1, max_length=100, examples=["Turmeric"])
    lot_no: int = Field(ge=1)
    procurement_ids: list[int] = Field(description="Unbatched procurements of this crop/lot")
    first_stage_details: FirstStageDetails


class ProcessingBatchQuery(CamelModel):
    """List query; its JSON form is part of the list cache key."""

    search: Optional[str] = None
    status: Optional[EffectiveStatus] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class LatestStageSummary(CamelModel):
    id: int
    processing_count: int
    status: EffectiveStatus
    process_method: str
    date_of_processing: datetime
    done_by: str
    initial_quantity: float
    quantity_after_process: Optional[float]
    last_drying_quantity: Optional[float]


class ProcessingBatchSummary(CamelModel):
    """A batch with its derived status and availability."""

    id: int
    batch_code: str
    crop: str
    lot_no: int
    initial_batch_quantity: float
    created_at: datetime
    latest_stage_summary: Optional[LatestStageSummary]
    total_quantity_sold_from_batch: float
    net_available_quantity: float


class DryingEntryResponse(CamelModel):
    id: int
    day: int
    temperature: Optional[float]
    humidity: Optional[float]
    moisture: Optional[float]
    current_quantity: float
    notes: Optional[str]


class StageSaleResponse(CamelModel):
    id: int
    quantity_sold: float
    date_of_sale: datetime


class BatchSaleResponse(StageSaleResponse):
    processing_stage_id: int
    processing_count: Optional[int]


class ProcessingStageResponse(CamelModel):
    id: int
    processing_count: int
    status: ProcessingStageStatus
    process_method: str
    date_of_processing: datetime
    date_of_completion: Optional[datetime]
    done_by: str
    initial_quantity: float
    quantity_after_process: Optional[float]
    drying_entries: list[DryingEntryResponse]
    sales: list[StageSaleResponse]


class ProcurementResponse(CamelModel):
    id: int
    procurement_number: str
    crop: str
    lot_no: int
    quantity: float
    date_of_procurement: datetime


class ProcessingBatchDetail(ProcessingBatchSummary):
    """Full batch view: summary plus its whole history."""

    created_by_id: int
    procurements: list[ProcurementResponse]
    processing_stages: list[ProcessingStageResponse]
    sales: list[BatchSaleResponse]


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


class ProcessingBatchListResponse(CamelModel):
    """Response schema for batch list."""

    processing_batches: list[ProcessingBatchSummary]
    pagination: Pagination


class DeleteBatchResponse(CamelModel):
    success: bool
    message: str
