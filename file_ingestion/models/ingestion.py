"""Uploaded file and ingestion metadata records."""

import enum
from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from file_ingestion.db import Base


class IngestionStatus(enum.Enum):
    submitted = "Submitted"


class IngestionFile(Base):
    """A blob written to the upload directory."""

    __tablename__ = "ingestion_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    storage_path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    metadata_records: Mapped[list["IngestionMetadata"]] = relationship(
        back_populates="file",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class IngestionMetadata(Base):
    """Tags and workflow status submitted alongside an uploaded file."""

    __tablename__ = "ingestion_metadata"
    __table_args__ = (
        Index("ix_ingestion_metadata_ingestion_file_id", "ingestion_file_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ingestion_file_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ingestion_files.id", ondelete="CASCADE"), nullable=False
    )
    tags: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(40), nullable=False, default=IngestionStatus.submitted.value
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    file: Mapped[IngestionFile] = relationship(back_populates="metadata_records")
