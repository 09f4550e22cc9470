from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FILE_NAME_MAX_LENGTH = 255


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UploadResponse(CamelModel):
    file_id: int
    metadata_id: int
    message: str


class StatusRead(CamelModel):
    id: int
    file_name: str
    status: str


class FileSummaryRead(CamelModel):
    id: int
    file_name: str
    uploaded_at: datetime
    size: int


class MetadataRead(CamelModel):
    id: int
    tags: str
    status: str
    submitted_at: datetime
    file: FileSummaryRead


class MetadataUpdate(CamelModel):
    tags: str | None = None
    file_name: str | None = Field(default=None, max_length=FILE_NAME_MAX_LENGTH)


class MessageResponse(BaseModel):
    message: str


class HealthRead(BaseModel):
    status: str
