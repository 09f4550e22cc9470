from file_ingestion.models.ingestion import (  # noqa: F401
    IngestionFile,
    IngestionMetadata,
    IngestionStatus,
)
