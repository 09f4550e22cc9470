"""Service layer for blob storage, ingestion records and authentication."""
