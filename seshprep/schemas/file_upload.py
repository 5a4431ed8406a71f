"""Schemas for file validation, upload sessions and stored files"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FileValidationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    file_size: int = Field(alias="fileSize")
    mime_type: str = Field(alias="mimeType")
    category: str


class FileValidationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    valid: bool = True
    sanitized_file_name: str = Field(serialization_alias="sanitizedFileName")


class UploadSessionCreate(BaseModel):
    file_name: str
    file_size: int
    mime_type: str
    category: str
    description: Optional[str] = None


class UploadSessionResponse(BaseModel):
    id: str
    project_id: int
    category: str
    original_filename: str
    sanitized_filename: str
    file_size: int
    received_bytes: int
    next_chunk_index: int
    status: str
    file_upload_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FileUploadResponse(BaseModel):
    id: int
    project_id: int
    category: str
    file_path: str
    filename: str
    original_filename: str
    file_size: int
    mime_type: str
    version: int
    description: Optional[str] = None
    uploaded_by: int
    created_at: datetime

    class Config:
        from_attributes = True


class DownloadLinkResponse(BaseModel):
    url: str
    expires_at: datetime
