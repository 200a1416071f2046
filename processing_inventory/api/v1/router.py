"""Main router aggregator for API v1."""

from fastapi import APIRouter

from processing_inventory.api.v1.processing_batches import router as processing_batches_router
from processing_inventory.api.v1.processing_stages import router as processing_stages_router
from processing_inventory.api.v1.sales import router as sales_router

router = APIRouter(prefix="/api")

router.include_router(processing_batches_router)
router.include_router(processing_stages_router)
router.include_router(sales_router)
