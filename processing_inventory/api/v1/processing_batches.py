"""API endpoints for processing batch operations."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from processing_inventory.api.v1.deps import get_batch_service, get_stage_service
from processing_inventory.auth import AuthContext, get_auth_context, require_admin
from processing_inventory.domain.exceptions import (
    BatchNotFoundError,
    BusinessRuleViolation,
    TransactionTimeoutError,
)
from processing_inventory.domain.services.batch_service import ProcessingBatchService
from processing_inventory.domain.services.stage_service import ProcessingStageService
from processing_inventory.domain.services.status_resolver import EffectiveStatus
from processing_inventory.schemas.processing_batch import (
    DeleteBatchResponse,
    ProcessingBatchCreateRequest,
    ProcessingBatchDetail,
    ProcessingBatchListResponse,
    ProcessingBatchQuery,
    ProcessingStageResponse,
)
from processing_inventory.schemas.processing_stage import NextStageRequest

router = APIRouter(prefix="/processing-batches", tags=["processing-batches"])


@router.post("/", response_model=ProcessingBatchDetail, status_code=status.HTTP_201_CREATED)
async def create_processing_batch(
    batch_data: ProcessingBatchCreateRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingBatchService, Depends(get_batch_service)],
) -> ProcessingBatchDetail:
    """Create a batch from procurements, together with its first stage."""
    try:
        return await service.create_batch(batch_data, auth)

    except BusinessRuleViolation as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except TransactionTimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )


@router.get("/", response_model=ProcessingBatchListResponse)
async def list_processing_batches(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingBatchService, Depends(get_batch_service)],
    search: Optional[str] = Query(None, description="Matches batch code or crop"),
    status_filter: Optional[EffectiveStatus] = Query(
        None, alias="status", description="Effective status of the latest stage"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100, description="Page size"),
) -> ProcessingBatchListResponse:
    """List batches with their derived status and availability."""
    query = ProcessingBatchQuery(search=search or None, status=status_filter, page=page, limit=limit)
    return await service.list_batches(query)


@router.get("/{batch_id}", response_model=ProcessingBatchDetail)
async def get_processing_batch(
    batch_id: int,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingBatchService, Depends(get_batch_service)],
) -> ProcessingBatchDetail:
    """Retrieve a batch with its full processing history."""
    try:
        return await service.get_batch(batch_id)

    except BatchNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.delete("/{batch_id}", response_model=DeleteBatchResponse)
async def delete_processing_batch(
    batch_id: int,
    auth: Annotated[AuthContext, Depends(require_admin)],
    service: Annotated[ProcessingBatchService, Depends(get_batch_service)],
) -> DeleteBatchResponse:
    """Delete a batch; its procurements become unbatched."""
    try:
        batch_code = await service.delete_batch(batch_id)
        return DeleteBatchResponse(success=True, message=f"Processing batch {batch_code} deleted.")

    except BatchNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except TransactionTimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )


@router.post(
    "/{batch_id}/stages",
    response_model=ProcessingStageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_next_stage(
    batch_id: int,
    stage_data: NextStageRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingStageService, Depends(get_stage_service)],
) -> ProcessingStageResponse:
    """Start the next processing stage from the latest finished one."""
    try:
        stage = await service.start_next_stage(batch_id, stage_data, auth)
        return ProcessingStageResponse.model_validate(stage)

    except BatchNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except BusinessRuleViolation as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except TransactionTimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
