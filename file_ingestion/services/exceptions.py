"""Service-layer failures, mapped to HTTP responses in ``file_ingestion.errors``."""


class IngestionError(Exception):
    """Base exception for ingestion errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class IngestionValidationError(IngestionError, ValueError):
    """Missing or invalid caller input."""


class FileTooLargeError(IngestionValidationError):
    """Upload exceeds the configured size limit."""

    status_code = 413


class PathTraversalError(IngestionValidationError):
    """Attempted path traversal detected."""


class NotFoundError(IngestionError, LookupError):
    """No matching record."""

    status_code = 404


class BlobNotFoundError(NotFoundError):
    """Database row exists but its blob is gone from disk."""
