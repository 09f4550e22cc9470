"""create ingestion tables

Revision ID: 9c1e4a7b2d30
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "9c1e4a7b2d30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ingestion_files",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("file_name", sa.Text, nullable=False),
        sa.Column("storage_path", sa.Text, nullable=False),
        sa.Column("size", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("storage_path", name="uq_ingestion_files_storage_path"),
    )
    op.create_table(
        "ingestion_metadata",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ingestion_file_id",
            sa.Integer,
            sa.ForeignKey("ingestion_files.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tags", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.String(40), nullable=False, server_default="Submitted"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_ingestion_metadata_ingestion_file_id",
        "ingestion_metadata",
        ["ingestion_file_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_ingestion_metadata_ingestion_file_id", table_name="ingestion_metadata")
    op.drop_table("ingestion_metadata")
    op.drop_table("ingestion_files")
