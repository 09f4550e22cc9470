from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import event, func, select, text

from file_ingestion.models.ingestion import IngestionFile, IngestionMetadata
from file_ingestion.schemas.ingestion import MetadataUpdate
from file_ingestion.services import ingestion as ingestion_service
from file_ingestion.services.exceptions import (
    BlobNotFoundError,
    FileTooLargeError,
    IngestionValidationError,
    NotFoundError,
)
from file_ingestion.services.ingestion import (
    format_file_size,
    format_tags,
    ingestion_files,
    parse_tags,
)


def _count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


def test_upload_creates_file_and_metadata(db_session, blob_store):
    ingestion_file, metadata = ingestion_files.upload(
        db_session, data=b"hello world", original_file_name="notes.txt", tags="a,b"
    )
    assert ingestion_file.id > 0
    assert metadata.id > 0
    assert metadata.ingestion_file_id == ingestion_file.id
    assert metadata.status == "Submitted"
    assert metadata.tags == "a,b"
    assert ingestion_file.file_name == "notes.txt"
    assert ingestion_file.size == 11
    assert blob_store.read_bytes(ingestion_file.storage_path) == b"hello world"


def test_upload_keeps_tags_verbatim(db_session, blob_store):
    _, metadata = ingestion_files.upload(
        db_session, data=b"x", original_file_name="x.txt", tags=" a ,, b "
    )
    assert metadata.tags == " a ,, b "


def test_upload_override_names_blob_but_not_record(db_session, blob_store):
    ingestion_file, _ = ingestion_files.upload(
        db_session,
        data=b"x",
        original_file_name="scan.png",
        tags="",
        file_name="invoice.png",
    )
    assert ingestion_file.file_name == "scan.png"
    assert ingestion_file.storage_path.endswith("_invoice.png")


@pytest.mark.parametrize("data", [b"", None])
def test_upload_rejects_empty_payload(db_session, blob_store, data):
    with pytest.raises(IngestionValidationError, match="No file uploaded"):
        ingestion_files.upload(db_session, data=data, original_file_name="e.txt", tags="a")
    assert _count(db_session, IngestionFile) == 0
    assert _count(db_session, IngestionMetadata) == 0


def test_upload_rejects_oversized_payload(db_session, blob_store, monkeypatch):
    limited = ingestion_service.settings.model_copy(update={"max_upload_bytes": 4})
    monkeypatch.setattr(ingestion_service, "settings", limited)
    with pytest.raises(FileTooLargeError):
        ingestion_files.upload(db_session, data=b"12345", original_file_name="big.txt", tags="")
    assert _count(db_session, IngestionFile) == 0


def test_metadata_insert_failure_rolls_back_file_and_blob(db_session, blob_store):
    def _fail(mapper, connection, target):
        raise RuntimeError("metadata insert failed")

    event.listen(IngestionMetadata, "before_insert", _fail)
    try:
        with pytest.raises(RuntimeError):
            ingestion_files.upload(
                db_session, data=b"payload", original_file_name="doc.txt", tags="a"
            )
    finally:
        event.remove(IngestionMetadata, "before_insert", _fail)

    assert _count(db_session, IngestionFile) == 0
    assert _count(db_session, IngestionMetadata) == 0
    assert list(blob_store.base_path.iterdir()) == []


def test_get_status_returns_file_name_and_status(db_session, make_record):
    metadata = make_record(file_name="summary.docx")
    assert ingestion_files.get_status(db_session, metadata.id) == {
        "id": metadata.id,
        "fileName": "summary.docx",
        "status": "Submitted",
    }


def test_get_status_missing_metadata(db_session):
    with pytest.raises(NotFoundError, match="Metadata not found"):
        ingestion_files.get_status(db_session, 999)


def test_get_file_returns_stored_bytes(db_session, make_record):
    metadata = make_record(file_name="data.bin", data=b"\x00\x01\x02")
    ingestion_file, stream = ingestion_files.get_file(db_session, metadata.ingestion_file_id)
    assert ingestion_file.file_name == "data.bin"
    assert b"".join(stream.chunks) == b"\x00\x01\x02"


def test_get_file_missing_row(db_session, blob_store):
    with pytest.raises(NotFoundError, match="File not found"):
        ingestion_files.get_file(db_session, 42)


def test_get_file_blob_removed_from_disk(db_session, blob_store, make_record):
    metadata = make_record()
    blob_store.delete(metadata.file.storage_path)
    with pytest.raises(BlobNotFoundError):
        ingestion_files.get_file(db_session, metadata.ingestion_file_id)


def test_list_orders_by_submission_time_descending(db_session, make_record):
    base = datetime(2025, 1, 1, tzinfo=UTC)
    middle = make_record(file_name="b.txt", submitted_at=base + timedelta(hours=1))
    newest = make_record(file_name="c.txt", submitted_at=base + timedelta(hours=2))
    oldest = make_record(file_name="a.txt", submitted_at=base)

    result = ingestion_files.list(db_session)
    assert [m.id for m in result] == [newest.id, middle.id, oldest.id]


def test_list_filters_by_exact_status(db_session, make_record):
    submitted = make_record(status="Submitted")
    make_record(status="Processing")
    make_record(status="submitted")

    result = ingestion_files.list(db_session, status="Submitted")
    assert [m.id for m in result] == [submitted.id]


def test_list_filters_by_file_name_substring(db_session, make_record):
    report = make_record(file_name="q3-report.pdf")
    annual = make_record(file_name="annual_report_2024.xlsx")
    make_record(file_name="invoice.pdf")

    result = ingestion_files.list(db_session, file_name="report")
    assert {m.id for m in result} == {report.id, annual.id}


def test_list_file_name_filter_treats_wildcards_literally(db_session, make_record):
    make_record(file_name="plain.txt")
    percent = make_record(file_name="100%.txt")
    result = ingestion_files.list(db_session, file_name="%")
    assert [m.id for m in result] == [percent.id]


def test_list_empty_filters_return_everything(db_session, make_record):
    make_record()
    make_record()
    assert len(ingestion_files.list(db_session, file_name="", status="")) == 2


def test_deleting_file_row_cascades_to_metadata(db_session, make_record):
    metadata = make_record()
    file_id = metadata.ingestion_file_id
    db_session.execute(text("DELETE FROM ingestion_files WHERE id = :id"), {"id": file_id})
    db_session.commit()
    assert _count(db_session, IngestionMetadata) == 0


def test_orm_delete_cascades_to_metadata(db_session, make_record):
    metadata = make_record()
    db_session.delete(metadata.file)
    db_session.commit()
    assert _count(db_session, IngestionMetadata) == 0
    orphaned = db_session.scalar(
        select(func.count())
        .select_from(IngestionMetadata)
        .outerjoin(IngestionFile)
        .where(IngestionFile.id.is_(None))
    )
    assert orphaned == 0


def test_update_metadata_normalizes_tags_and_renames(db_session, make_record):
    metadata = make_record(file_name="old.txt", tags="a")
    updated = ingestion_files.update_metadata(
        db_session, metadata.id, MetadataUpdate(tags=" x, y ,x,", file_name=" new.txt ")
    )
    assert updated.tags == "x,y"
    assert updated.file.file_name == "new.txt"


def test_update_metadata_partial_leaves_other_fields(db_session, make_record):
    metadata = make_record(file_name="keep.txt", tags="a")
    updated = ingestion_files.update_metadata(db_session, metadata.id, MetadataUpdate(tags="b"))
    assert updated.file.file_name == "keep.txt"
    assert updated.tags == "b"


def test_update_metadata_rejects_blank_file_name(db_session, make_record):
    metadata = make_record()
    with pytest.raises(IngestionValidationError):
        ingestion_files.update_metadata(db_session, metadata.id, MetadataUpdate(file_name="  "))


def test_update_metadata_missing(db_session):
    with pytest.raises(NotFoundError):
        ingestion_files.update_metadata(db_session, 5, MetadataUpdate(tags="a"))


def test_delete_file_removes_rows_and_blob(db_session, blob_store, make_record):
    metadata = make_record()
    storage_path = metadata.file.storage_path
    ingestion_files.delete_file(db_session, metadata.ingestion_file_id)
    assert _count(db_session, IngestionFile) == 0
    assert _count(db_session, IngestionMetadata) == 0
    assert blob_store.exists(storage_path) is False


def test_delete_file_missing(db_session, blob_store):
    with pytest.raises(NotFoundError):
        ingestion_files.delete_file(db_session, 1)


def test_tag_helpers():
    assert parse_tags("a, b,,a , c") == ["a", "b", "c"]
    assert parse_tags("") == []
    assert parse_tags(None) == []
    assert format_tags(["x", " y", "x"]) == "x,y"


def test_format_file_size():
    assert format_file_size(512) == "512 B"
    assert format_file_size(2048) == "2.0 KB"
    assert format_file_size(5 * 1024 * 1024) == "5.0 MB"
