"""File response schemas.

Python attributes stay snake_case; JSON goes out camelCase to match the
frontend (``originalName``, ``uploadDate``...).
"""
import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

from secure_uploader.utils import format_file_size


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class FileOut(CamelModel):
    """Public view of a FileRecord. The blob reference is never exposed."""
    id: uuid.UUID
    original_name: str
    mime_type: str
    size: int
    category: str
    description: str = ""
    upload_date: datetime

    @computed_field(alias="sizeFormatted")
    @property
    def size_formatted(self) -> str:
        return format_file_size(self.size)


class UploadError(CamelModel):
    filename: str
    error: str


class FileUploadResponse(CamelModel):
    success: bool = True
    message: str = "File uploaded successfully"
    file: FileOut


class MultiUploadResponse(CamelModel):
    success: bool = True
    message: str
    files: list[FileOut]
    errors: Optional[list[UploadError]] = None


class FileDetailResponse(CamelModel):
    success: bool = True
    file: FileOut


class FileListResponse(CamelModel):
    success: bool = True
    category: Optional[str] = None
    count: int
    files: list[FileOut]


class DeleteResponse(CamelModel):
    success: bool = True
    message: str = "File deleted successfully"


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    error: Optional[str] = None
