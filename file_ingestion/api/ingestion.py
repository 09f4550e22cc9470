"""Ingestion endpoints: upload, status, download, listing, edit and delete."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from file_ingestion.api.deps import get_current_user, get_db, require_editor
from file_ingestion.schemas.ingestion import (
    MessageResponse,
    MetadataRead,
    MetadataUpdate,
    StatusRead,
    UploadResponse,
)
from file_ingestion.services.blob_store import build_content_disposition
from file_ingestion.services.ingestion import ingestion_files

router = APIRouter(prefix="/ingestion", tags=["ingestion"])


@router.post("/upload-with-metadata", response_model=UploadResponse)
def upload_with_metadata(
    file: UploadFile | None = File(default=None, alias="File"),
    tags: str = Form(default="", alias="Tags"),
    file_name: str | None = Form(default=None, alias="FileName"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_editor),
):
    data = file.file.read() if file is not None else b""
    original_file_name = (file.filename if file is not None else None) or "file"
    ingestion_file, metadata = ingestion_files.upload(
        db,
        data=data,
        original_file_name=original_file_name,
        tags=tags,
        file_name=file_name,
    )
    return {
        "fileId": ingestion_file.id,
        "metadataId": metadata.id,
        "message": "File and metadata uploaded successfully",
    }


@router.get("/status", response_model=StatusRead)
def get_status(
    id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return ingestion_files.get_status(db, id)


@router.get("/file/{file_id}")
def download_file(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    ingestion_file, stream = ingestion_files.get_file(db, file_id)
    headers = {
        "Content-Disposition": build_content_disposition(ingestion_file.file_name),
        "Content-Length": str(stream.content_length),
    }
    return StreamingResponse(
        stream.chunks,
        media_type="application/octet-stream",
        headers=headers,
    )


@router.get("/list", response_model=list[MetadataRead])
def list_files(
    file_name: str | None = Query(default=None, alias="fileName"),
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return ingestion_files.list(db, file_name=file_name, status=status)


@router.patch("/metadata/{metadata_id}", response_model=MetadataRead)
def update_metadata(
    metadata_id: int,
    payload: MetadataUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_editor),
):
    return ingestion_files.update_metadata(db, metadata_id, payload)


@router.delete("/file/{file_id}", response_model=MessageResponse)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_editor),
):
    ingestion_files.delete_file(db, file_id)
    return {"message": "File deleted"}
