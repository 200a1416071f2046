"""SQLModel database models for procurements, processing batches and their history."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


# Timestamps are stored with their UTC offset
TIMESTAMP = DateTime(timezone=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingStageStatus(str, Enum):
    """Lifecycle status persisted on a processing stage."""

    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class Procurement(SQLModel, table=True):
    """
    Produce bought from a farmer.

    Procurements are created elsewhere; this service only reads them and
    links / unlinks them to processing batches.
    """

    __tablename__ = "procurements"

    id: Optional[int] = Field(default=None, primary_key=True)
    procurement_number: str = Field(unique=True, index=True, max_length=50)
    crop: str = Field(index=True, max_length=100)
    lot_no: int = Field(index=True)
    quantity: float = Field(description="Procured quantity in kg")
    date_of_procurement: datetime = Field(default_factory=_utcnow, sa_type=TIMESTAMP)

    processing_batch_id: Optional[int] = Field(
        default=None,
        foreign_key="processing_batches.id",
        index=True,
        description="Batch this procurement was consumed into (NULL if unbatched)",
    )

    processing_batch: Optional["ProcessingBatch"] = Relationship(back_populates="procurements")


class ProcessingBatch(SQLModel, table=True):
    """
    A unit of produce under processing.

    Business Rules:
    - batch_code is unique and derived from crop, lot number and processing date
    - processing stages are numbered 1, 2, 3... by processing_count
    - sales may be recorded against any stage of the batch
    """

    __tablename__ = "processing_batches"

    # Primary Key
    id: Optional[int] = Field(default=None, primary_key=True)

    # Business Identifiers
    batch_code: str = Field(unique=True, index=True, max_length=100)
    crop: str = Field(index=True, max_length=100)
    lot_no: int = Field(index=True)

    initial_batch_quantity: float = Field(
        description="Sum of the linked procurement quantities at creation",
    )

    # Audit Trail
    created_by_id: int = Field(index=True, description="User who created the batch")
    created_at: datetime = Field(default_factory=_utcnow, sa_type=TIMESTAMP, index=True)
    updated_at: datetime = Field(default_factory=_utcnow, sa_type=TIMESTAMP)

    # Relationships
    procurements: list[Procurement] = Relationship(back_populates="processing_batch")
    processing_stages: list["ProcessingStage"] = Relationship(
        back_populates="processing_batch",
        sa_relationship_kwargs={"order_by": "ProcessingStage.processing_count"},
    )
    sales: list["Sale"] = Relationship(back_populates="processing_batch")


class ProcessingStage(SQLModel, table=True):
    """
    One processing step (P1, P2, ...) of a batch.

    quantity_after_process is only set when the stage transitions to FINISHED.
    """

    __tablename__ = "processing_stages"
    __table_args__ = (UniqueConstraint("processing_batch_id", "processing_count"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    processing_batch_id: int = Field(foreign_key="processing_batches.id", index=True)
    processing_count: int = Field(ge=1, description="Sequence number within the batch")

    status: ProcessingStageStatus = Field(default=ProcessingStageStatus.IN_PROGRESS)
    process_method: str = Field(max_length=50)
    date_of_processing: datetime = Field(sa_type=TIMESTAMP)
    date_of_completion: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP)
    done_by: str = Field(max_length=100)

    initial_quantity: float
    quantity_after_process: Optional[float] = Field(default=None)

    created_by_id: int
    created_at: datetime = Field(default_factory=_utcnow, sa_type=TIMESTAMP)

    processing_batch: Optional[ProcessingBatch] = Relationship(back_populates="processing_stages")
    drying_entries: list["DryingEntry"] = Relationship(
        back_populates="processing_stage",
        sa_relationship_kwargs={"order_by": "DryingEntry.day"},
    )
    sales: list["Sale"] = Relationship(back_populates="processing_stage")


class DryingEntry(SQLModel, table=True):
    """A daily measurement taken while a stage is in progress."""

    __tablename__ = "drying_entries"
    __table_args__ = (UniqueConstraint("processing_stage_id", "day"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    processing_stage_id: int = Field(foreign_key="processing_stages.id", index=True)
    day: int = Field(ge=1, description="Day index within the stage")

    temperature: Optional[float] = Field(default=None)
    humidity: Optional[float] = Field(default=None)
    moisture: Optional[float] = Field(default=None)
    current_quantity: float = Field(ge=0, description="Quantity reading at this day")
    notes: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=_utcnow, sa_type=TIMESTAMP)

    processing_stage: Optional[ProcessingStage] = Relationship(back_populates="drying_entries")


class Sale(SQLModel, table=True):
    """Quantity sold out of a specific processing stage."""

    __tablename__ = "sales"

    id: Optional[int] = Field(default=None, primary_key=True)
    processing_batch_id: int = Field(foreign_key="processing_batches.id", index=True)
    processing_stage_id: int = Field(foreign_key="processing_stages.id", index=True)

    quantity_sold: float = Field(gt=0)
    date_of_sale: datetime = Field(default_factory=_utcnow, sa_type=TIMESTAMP, index=True)

    created_by_id: int
    created_at: datetime = Field(default_factory=_utcnow, sa_type=TIMESTAMP)

    processing_batch: Optional[ProcessingBatch] = Relationship(back_populates="sales")
    processing_stage: Optional[ProcessingStage] = Relationship(back_populates="sales")
