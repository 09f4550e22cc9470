"""
Filesystem-backed blob storage for uploaded files.

Blobs live under a single base directory. Each one is named with the UTC
upload timestamp (``yyyyMMddHHmmss``) followed by the sanitized filename, so
the relative path recorded in the database identifies the blob.

Key features:
- Exclusive create: an existing blob is never overwritten
- Consistent path-traversal protection
- Chunked streaming reads for downloads
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import quote

from file_ingestion.services.exceptions import BlobNotFoundError, PathTraversalError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
CHUNK_SIZE = 1024 * 1024
SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._ -]+")
_MAX_NAME_ATTEMPTS = 1000


def sanitize_filename(filename: str) -> str:
    name = Path(filename.replace("\\", "/")).name
    cleaned = SAFE_FILENAME_RE.sub("_", name).strip().strip(".")
    return cleaned[:200] or "file"


def build_content_disposition(filename: str) -> str:
    """
    Attachment disposition with an ASCII-safe ``filename`` and, when the
    original name differs from it, an RFC 5987 ``filename*`` carrying the
    UTF-8 name.
    """
    safe = sanitize_filename(filename)
    disposition = f'attachment; filename="{safe}"'
    original = Path(filename.replace("\\", "/")).name.strip()
    if original and original != safe:
        disposition += f"; filename*=UTF-8''{quote(original, safe='')}"
    return disposition


@dataclass(frozen=True)
class BlobStream:
    chunks: Iterator[bytes]
    content_length: int


class BlobStore:
    """Stores and retrieves raw upload bytes on local disk."""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    @property
    def base_path(self) -> Path:
        """Resolved base directory for uploads."""
        return self.base_dir.resolve()

    def _resolve(self, storage_path: str) -> Path:
        target = (self.base_path / storage_path).resolve()
        try:
            target.relative_to(self.base_path)
        except ValueError:
            raise PathTraversalError(
                "Path traversal detected: target is outside upload directory"
            )
        return target

    def _candidate_names(self, stem_name: str, timestamp: str) -> Iterator[str]:
        yield f"{timestamp}_{stem_name}"
        path = Path(stem_name)
        for attempt in range(1, _MAX_NAME_ATTEMPTS):
            yield f"{timestamp}_{path.stem}-{attempt}{path.suffix}"

    def store(
        self,
        original_file_name: str,
        data: bytes,
        file_name_override: str | None = None,
    ) -> str:
        """
        Write ``data`` under a fresh timestamped name.

        The override names the blob when it is non-blank, otherwise the
        original uploaded filename does. Returns the path relative to the
        base directory. OSError propagates to the caller.
        """
        chosen = original_file_name
        if file_name_override and file_name_override.strip():
            chosen = file_name_override.strip()
        safe_name = sanitize_filename(chosen)
        timestamp = datetime.now(UTC).strftime(TIMESTAMP_FORMAT)

        base = self.base_path
        base.mkdir(parents=True, exist_ok=True)

        for candidate in self._candidate_names(safe_name, timestamp):
            target = self._resolve(candidate)
            try:
                handle = target.open("xb")
            except FileExistsError:
                continue
            try:
                with handle:
                    handle.write(data)
            except OSError:
                target.unlink(missing_ok=True)
                raise
            relative = str(target.relative_to(base))
            logger.info("Blob saved: %s (%d bytes)", relative, len(data))
            return relative

        raise FileExistsError(f"No free blob name for {safe_name} at {timestamp}")

    def exists(self, storage_path: str) -> bool:
        return self._resolve(storage_path).is_file()

    def open(self, storage_path: str) -> BlobStream:
        path = self._resolve(storage_path)
        if not path.is_file():
            raise BlobNotFoundError("File not found")
        size = path.stat().st_size

        def _chunks() -> Iterator[bytes]:
            with path.open("rb") as handle:
                while True:
                    chunk = handle.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk

        return BlobStream(chunks=_chunks(), content_length=size)

    def read_bytes(self, storage_path: str) -> bytes:
        return b"".join(self.open(storage_path).chunks)

    def delete(self, storage_path: str) -> bool:
        """
        Delete a blob by its relative path within the base directory.

        Returns True if deleted, False if not found.
        """
        target = self._resolve(storage_path)
        if target.exists():
            target.unlink()
            logger.info("Blob deleted: %s", storage_path)
            return True
        return False
