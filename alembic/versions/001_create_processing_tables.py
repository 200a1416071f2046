"""Create procurement, processing batch, stage, drying entry and sale tables.

Revision ID: 001
Revises:
Create Date: 2025-05-01

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

stage_status = sa.Enum("IN_PROGRESS", "FINISHED", "CANCELLED", name="processingstagestatus")


def upgrade() -> None:
    """Create initial tables."""
    # Create processing_batches table
    op.create_table(
        "processing_batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_code", sa.String(length=100), nullable=False),
        sa.Column("crop", sa.String(length=100), nullable=False),
        sa.Column("lot_no", sa.Integer(), nullable=False),
        sa.Column("initial_batch_quantity", sa.Float(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_processing_batches_batch_code", "processing_batches", ["batch_code"], unique=True)
    op.create_index("ix_processing_batches_crop", "processing_batches", ["crop"])
    op.create_index("ix_processing_batches_lot_no", "processing_batches", ["lot_no"])
    op.create_index("ix_processing_batches_created_by_id", "processing_batches", ["created_by_id"])
    op.create_index("ix_processing_batches_created_at", "processing_batches", ["created_at"])

    # Procurements are owned by the procurement service; only the batch link is written here
    op.create_table(
        "procurements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("procurement_number", sa.String(length=50), nullable=False),
        sa.Column("crop", sa.String(length=100), nullable=False),
        sa.Column("lot_no", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("date_of_procurement", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processing_batch_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["processing_batch_id"], ["processing_batches.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_procurements_procurement_number", "procurements", ["procurement_number"], unique=True)
    op.create_index("ix_procurements_crop", "procurements", ["crop"])
    op.create_index("ix_procurements_lot_no", "procurements", ["lot_no"])
    op.create_index("ix_procurements_processing_batch_id", "procurements", ["processing_batch_id"])

    # Create processing_stages table
    op.create_table(
        "processing_stages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("processing_batch_id", sa.Integer(), nullable=False),
        sa.Column("processing_count", sa.Integer(), nullable=False),
        sa.Column("status", stage_status, nullable=False),
        sa.Column("process_method", sa.String(length=50), nullable=False),
        sa.Column("date_of_processing", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_of_completion", sa.DateTime(timezone=True), nullable=True),
        sa.Column("done_by", sa.String(length=100), nullable=False),
        sa.Column("initial_quantity", sa.Float(), nullable=False),
        sa.Column("quantity_after_process", sa.Float(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["processing_batch_id"], ["processing_batches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("processing_batch_id", "processing_count"),
    )
    op.create_index(
        "ix_processing_stages_processing_batch_id", "processing_stages", ["processing_batch_id"]
    )

    # Create drying_entries table
    op.create_table(
        "drying_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("processing_stage_id", sa.Integer(), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("humidity", sa.Float(), nullable=True),
        sa.Column("moisture", sa.Float(), nullable=True),
        sa.Column("current_quantity", sa.Float(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["processing_stage_id"], ["processing_stages.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("processing_stage_id", "day"),
    )
    op.create_index(
        "ix_drying_entries_processing_stage_id", "drying_entries", ["processing_stage_id"]
    )

    # Create sales table
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("processing_batch_id", sa.Integer(), nullable=False),
        sa.Column("processing_stage_id", sa.Integer(), nullable=False),
        sa.Column("quantity_sold", sa.Float(), nullable=False),
        sa.Column("date_of_sale", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["processing_batch_id"], ["processing_batches.id"]),
        sa.ForeignKeyConstraint(["processing_stage_id"], ["processing_stages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sales_processing_batch_id", "sales", ["processing_batch_id"])
    op.create_index("ix_sales_processing_stage_id", "sales", ["processing_stage_id"])
    op.create_index("ix_sales_date_of_sale", "sales", ["date_of_sale"])


def downgrade() -> None:
    """Drop initial tables."""
    op.drop_index("ix_sales_date_of_sale", table_name="sales")
    op.drop_index("ix_sales_processing_stage_id", table_name="sales")
    op.drop_index("ix_sales_processing_batch_id", table_name="sales")
    op.drop_table("sales")

    op.drop_index("ix_drying_entries_processing_stage_id", table_name="drying_entries")
    op.drop_table("drying_entries")

    op.drop_index("ix_processing_stages_processing_batch_id", table_name="processing_stages")
    op.drop_table("processing_stages")
    stage_status.drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_procurements_processing_batch_id", table_name="procurements")
    op.drop_index("ix_procurements_lot_no", table_name="procurements")
    op.drop_index("ix_procurements_crop", table_name="procurements")
    op.drop_index("ix_procurements_procurement_number", table_name="procurements")
    op.drop_table("procurements")

    op.drop_index("ix_processing_batches_created_at", table_name="processing_batches")
    op.drop_index("ix_processing_batches_created_by_id", table_name="processing_batches")
    op.drop_index("ix_processing_batches_lot_no", table_name="processing_batches")
    op.drop_index("ix_processing_batches_crop", table_name="processing_batches")
    op.drop_index("ix_processing_batches_batch_code", table_name="processing_batches")
    op.drop_table("processing_batches")
