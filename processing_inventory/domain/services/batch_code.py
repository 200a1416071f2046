"""Unique batch code generation."""

from datetime import date

from processing_inventory.domain.value_objects import BatchCode
from processing_inventory.repositories.processing_batch_repository import ProcessingBatchRepository


async def generate_batch_code(
    repository: ProcessingBatchRepository,
    crop: str,
    lot_no: int,
    day: date,
) -> str:
    """
    Return a batch code for crop/lot/day that no batch uses yet.

    The first batch of the day gets the bare CROP-LOT-YYYYMMDD code; later
    ones get a -01, -02... suffix.
    """
    sequence = 0
    while True:
        code = BatchCode.build(crop, lot_no, day, sequence)
        if not await repository.batch_code_exists(code.value):
            return code.value
        sequence += 1
