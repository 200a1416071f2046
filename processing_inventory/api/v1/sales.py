"""API endpoints for sales."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from processing_inventory.api.v1.deps import get_stage_service
from processing_inventory.auth import AuthContext, get_auth_context, require_admin
from processing_inventory.domain.exceptions import (
    BusinessRuleViolation,
    SaleNotFoundError,
    StageNotFoundError,
    TransactionTimeoutError,
)
from processing_inventory.domain.services.stage_service import ProcessingStageService
from processing_inventory.schemas.processing_stage import SaleCreateRequest, SaleResponse

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("/", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
async def record_sale(
    sale_data: SaleCreateRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[ProcessingStageService, Depends(get_stage_service)],
) -> SaleResponse:
    """Sell quantity out of a finished stage."""
    try:
        sale = await service.record_sale(sale_data, auth)
        return SaleResponse.model_validate(sale)

    except StageNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleViolation as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TransactionTimeoutError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.delete("/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sale(
    sale_id: int,
    auth: Annotated[AuthContext, Depends(require_admin)],
    service: Annotated[ProcessingStageService, Depends(get_stage_service)],
) -> None:
    """Delete a sale record."""
    try:
        await service.delete_sale(sale_id)

    except SaleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TransactionTimeoutError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
