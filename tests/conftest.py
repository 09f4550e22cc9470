import os
from datetime import UTC, datetime

os.environ["DATABASE_URL"] = "sqlite+pysqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.pop("OIDC_ISSUER_URL", None)
os.environ.pop("OIDC_AUDIENCE", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from file_ingestion.db import Base, enable_sqlite_foreign_keys, get_db
from file_ingestion.models.ingestion import IngestionFile, IngestionMetadata
from file_ingestion.services.blob_store import BlobStore
from file_ingestion.services.ingestion import ingestion_files

from tests.tokens import bearer, make_token


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def blob_store(tmp_path, monkeypatch):
    store = BlobStore(tmp_path / "uploads")
    monkeypatch.setattr(ingestion_files, "blobs", store)
    return store


@pytest.fixture()
def client(session_factory, blob_store):
    from file_ingestion.main import app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def editor_headers():
    return bearer(make_token(["Editor"]))


@pytest.fixture()
def admin_headers():
    return bearer(make_token(["Admin"], subject="admin-1"))


@pytest.fixture()
def viewer_headers():
    return bearer(make_token(["Viewer"], subject="viewer-1"))


@pytest.fixture()
def make_record(db_session, blob_store):
    """Insert a file + metadata pair directly, bypassing the upload path."""

    def _make(
        file_name="report.txt",
        data=b"content",
        tags="a,b",
        status="Submitted",
        submitted_at=None,
    ):
        storage_path = blob_store.store(file_name, data)
        ingestion_file = IngestionFile(
            file_name=file_name,
            storage_path=storage_path,
            size=len(data),
            uploaded_at=datetime.now(UTC),
        )
        db_session.add(ingestion_file)
        db_session.flush()
        metadata = IngestionMetadata(
            ingestion_file_id=ingestion_file.id,
            tags=tags,
            status=status,
            submitted_at=submitted_at or datetime.now(UTC),
        )
        db_session.add(metadata)
        db_session.commit()
        db_session.refresh(metadata)
        return metadata

    return _make
