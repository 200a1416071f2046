"""Domain-specific exception classes."""


class ProcessingInventoryError(Exception):
    """Base exception for processing inventory errors."""

    pass


class BatchNotFoundError(ProcessingInventoryError):
    """Raised when a processing batch cannot be found."""

    def __init__(self, batch_id: int, already_deleted: bool = False):
        self.batch_id = batch_id
        suffix = " or already deleted" if already_deleted else ""
        super().__init__(f"Processing batch {batch_id} not found{suffix}")


class StageNotFoundError(ProcessingInventoryError):
    """Raised when a processing stage cannot be found."""

    def __init__(self, stage_id: int):
        self.stage_id = stage_id
        super().__init__(f"Processing stage {stage_id} not found")


class SaleNotFoundError(ProcessingInventoryError):
    """Raised when a sale cannot be found."""

    def __init__(self, sale_id: int):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} not found")


class TransactionTimeoutError(ProcessingInventoryError):
    """Raised when an atomic multi-step write exceeds its execution budget."""

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s, please try again"
        )


class BusinessRuleViolation(ProcessingInventoryError):
    """Base for request-level rule failures detected before any write."""

    pass


class EmptyProcurementSetError(BusinessRuleViolation):
    """Raised when a batch is requested without procurements."""

    def __init__(self) -> None:
        super().__init__("At least one procurement ID must be provided")


class ProcurementMismatchError(BusinessRuleViolation):
    """
    Raised when the requested procurements cannot all be batched.

    Covers unknown ids, crop/lot mismatch and procurements already attached to
    another batch; the lookup filters on all three at once so they are not
    told apart.
    """

    def __init__(self, requested: int, matched: int):
        self.requested = requested
        self.matched = matched
        super().__init__(
            "One or more procurement IDs are invalid, do not match crop/lot, "
            "or are already batched"
        )


class NonPositiveQuantityError(BusinessRuleViolation):
    """Raised when the summed procurement quantity is not strictly positive."""

    def __init__(self, quantity: float):
        self.quantity = quantity
        super().__init__(f"Total quantity for the batch must be positive, got {quantity}")


class InvalidProcessingDateError(BusinessRuleViolation):
    """Raised when the processing date cannot be interpreted."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid date of processing: {value!r}")


class InvalidStageTransitionError(BusinessRuleViolation):
    """Raised when a stage operation does not fit the stage's current status."""

    def __init__(self, stage_id: int | None, reason: str):
        self.stage_id = stage_id
        super().__init__(reason)


class DuplicateDryingDayError(BusinessRuleViolation):
    """Raised when a drying entry already exists for the given day."""

    def __init__(self, stage_id: int, day: int):
        self.stage_id = stage_id
        self.day = day
        super().__init__(f"Stage {stage_id} already has a drying entry for day {day}")


class InsufficientStageQuantityError(BusinessRuleViolation):
    """Raised when a sale exceeds what remains on the stage."""

    def __init__(self, stage_id: int, available: float, requested: float):
        self.stage_id = stage_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient quantity on stage {stage_id}: "
            f"available={available}, requested={requested}"
        )
