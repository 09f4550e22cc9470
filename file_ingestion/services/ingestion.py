"""Ingestion service: upload, status, listing, retrieval of uploaded files."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from file_ingestion.config import settings
from file_ingestion.models.ingestion import IngestionFile, IngestionMetadata, IngestionStatus
from file_ingestion.schemas.ingestion import MetadataUpdate
from file_ingestion.services.blob_store import BlobStore, BlobStream
from file_ingestion.services.exceptions import (
    FileTooLargeError,
    IngestionValidationError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


def parse_tags(value: str | None) -> list[str]:
    """Split a comma-separated tag string, dropping blanks and duplicates."""
    if not value:
        return []
    tags: list[str] = []
    for item in value.split(","):
        tag = item.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def format_tags(tags: list[str]) -> str:
    return ",".join(parse_tags(",".join(tags)))


def format_file_size(size: int) -> str:
    """Format file size for human-readable display."""
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    else:
        return f"{size / (1024 * 1024):.1f} MB"


class IngestionManager:
    """Coordinates blob writes with the file and metadata records."""

    def __init__(self) -> None:
        self.blobs: BlobStore | None = None

    def _blob_store(self) -> BlobStore:
        if self.blobs is None:
            self.blobs = BlobStore(settings.upload_dir)
        return self.blobs

    def upload(
        self,
        db: Session,
        data: bytes | None,
        original_file_name: str,
        tags: str | None,
        file_name: str | None = None,
    ) -> tuple[IngestionFile, IngestionMetadata]:
        if not data:
            raise IngestionValidationError("No file uploaded")
        if len(data) > settings.max_upload_bytes:
            raise FileTooLargeError(
                f"File too large ({len(data)} bytes). "
                f"Maximum size: {settings.max_upload_bytes} bytes"
            )

        blobs = self._blob_store()
        storage_path = blobs.store(original_file_name, data, file_name)
        try:
            ingestion_file = IngestionFile(
                file_name=original_file_name,
                storage_path=storage_path,
                size=len(data),
                uploaded_at=datetime.now(UTC),
            )
            db.add(ingestion_file)
            db.flush()

            metadata = IngestionMetadata(
                ingestion_file_id=ingestion_file.id,
                tags=tags or "",
                status=IngestionStatus.submitted.value,
                submitted_at=datetime.now(UTC),
            )
            db.add(metadata)
            db.commit()
        except Exception:
            db.rollback()
            blobs.delete(storage_path)
            logger.warning(
                "ingestion_upload_rolled_back file_name=%s path=%s",
                original_file_name,
                storage_path,
            )
            raise

        db.refresh(ingestion_file)
        db.refresh(metadata)
        logger.info(
            "ingestion_upload_success file_id=%s metadata_id=%s path=%s size=%d",
            ingestion_file.id,
            metadata.id,
            storage_path,
            ingestion_file.size,
        )
        return ingestion_file, metadata

    def get_metadata(self, db: Session, metadata_id: int) -> IngestionMetadata:
        stmt = (
            select(IngestionMetadata)
            .options(joinedload(IngestionMetadata.file))
            .where(IngestionMetadata.id == metadata_id)
        )
        metadata = db.scalars(stmt).first()
        if metadata is None:
            raise NotFoundError("Metadata not found")
        return metadata

    def get_status(self, db: Session, metadata_id: int) -> dict:
        metadata = self.get_metadata(db, metadata_id)
        return {
            "id": metadata.id,
            "fileName": metadata.file.file_name,
            "status": metadata.status,
        }

    def get_file_record(self, db: Session, file_id: int) -> IngestionFile:
        ingestion_file = db.get(IngestionFile, file_id)
        if ingestion_file is None:
            raise NotFoundError("File not found")
        return ingestion_file

    def get_file(self, db: Session, file_id: int) -> tuple[IngestionFile, BlobStream]:
        ingestion_file = self.get_file_record(db, file_id)
        stream = self._blob_store().open(ingestion_file.storage_path)
        return ingestion_file, stream

    def list(
        self,
        db: Session,
        file_name: str | None = None,
        status: str | None = None,
    ) -> list[IngestionMetadata]:
        stmt = (
            select(IngestionMetadata)
            .join(IngestionMetadata.file)
            .options(joinedload(IngestionMetadata.file))
            .order_by(IngestionMetadata.submitted_at.desc(), IngestionMetadata.id.desc())
        )
        if file_name:
            stmt = stmt.where(IngestionFile.file_name.contains(file_name, autoescape=True))
        if status:
            stmt = stmt.where(IngestionMetadata.status == status)
        return list(db.scalars(stmt).all())

    def update_metadata(
        self, db: Session, metadata_id: int, payload: MetadataUpdate
    ) -> IngestionMetadata:
        metadata = self.get_metadata(db, metadata_id)
        update_data = payload.model_dump(exclude_unset=True)
        if "file_name" in update_data:
            new_name = (update_data["file_name"] or "").strip()
            if not new_name:
                raise IngestionValidationError("File name is required")
            metadata.file.file_name = new_name
        if "tags" in update_data:
            metadata.tags = format_tags([update_data["tags"] or ""])
        db.commit()
        db.refresh(metadata)
        logger.info("ingestion_metadata_updated metadata_id=%s", metadata.id)
        return metadata

    def delete_file(self, db: Session, file_id: int) -> None:
        ingestion_file = self.get_file_record(db, file_id)
        storage_path = ingestion_file.storage_path
        db.delete(ingestion_file)
        db.commit()
        removed = self._blob_store().delete(storage_path)
        logger.info(
            "ingestion_file_deleted file_id=%s path=%s blob_removed=%s",
            file_id,
            storage_path,
            removed,
        )


ingestion_files = IngestionManager()
