"""API endpoints for processing stage transitions and drying entries."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from processing_inventory.api.v1.deps import get_stage_service
from processing_inventory.auth import AuthContext, get_auth_context
from processing_inventory.domain.exceptions import (
    BusinessRuleViolation,
    StageNotFoundError,
    TransactionTimeoutError,
)
from processing_inventory.domain.services.stage_service import ProcessingStageService
from processing_inventory.schemas.processing_batch import DryingEntryResponse, ProcessingStageResponse
from processing_inventory.schemas.processing_stage import DryingEntryCreateRequest, FinalizeStageRequest

router = APIRouter(prefix="/processing-stages", tags=["processing-stages"])


@router.post("/{stage_id}/finalize", response_model=ProcessingStageResponse)
async def finalize_stage(
    stage_id: int,
    finalize_data: FinalizeStageRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingStageService, Depends(get_stage_service)],
) -> ProcessingStageResponse:
    """Finish an in-progress stage, recording the quantity left after processing."""
    try:
        stage = await service.finalize_stage(stage_id, finalize_data)
        return ProcessingStageResponse.model_validate(stage)

    except StageNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleViolation as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TransactionTimeoutError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post("/{stage_id}/cancel", response_model=ProcessingStageResponse)
async def cancel_stage(
    stage_id: int,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingStageService, Depends(get_stage_service)],
) -> ProcessingStageResponse:
    """Cancel an in-progress stage."""
    try:
        stage = await service.cancel_stage(stage_id)
        return ProcessingStageResponse.model_validate(stage)

    except StageNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleViolation as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TransactionTimeoutError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post(
    "/{stage_id}/drying-entries",
    response_model=DryingEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_drying_entry(
    stage_id: int,
    entry_data: DryingEntryCreateRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingStageService, Depends(get_stage_service)],
) -> DryingEntryResponse:
    """Record a daily measurement for an in-progress stage."""
    try:
        entry = await service.record_drying_entry(stage_id, entry_data)
        return DryingEntryResponse.model_validate(entry)

    except StageNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleViolation as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TransactionTimeoutError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/{stage_id}/drying-entries", response_model=list[DryingEntryResponse])
async def list_drying_entries(
    stage_id: int,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingStageService, Depends(get_stage_service)],
) -> list[DryingEntryResponse]:
    """List a stage's drying entries by day."""
    try:
        entries = await service.list_drying_entries(stage_id)
        return [DryingEntryResponse.model_validate(e) for e in entries]

    except StageNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
