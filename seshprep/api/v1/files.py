"""File validation, chunked uploads and stored files"""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from seshprep.blobstore import BlobStore
from seshprep.context import RequestContext
from seshprep.database import get_db
from seshprep.dependencies import get_blob_store, get_request_context
from seshprep.schemas import (
    DownloadLinkResponse,
    FileUploadResponse,
    FileValidationRequest,
    FileValidationResponse,
    UploadSessionCreate,
    UploadSessionResponse,
)
from seshprep.services import files
from seshprep.services.validation import validate_file_upload

router = APIRouter()


@router.post("/validate-file-upload", response_model=FileValidationResponse)
def validate_upload(payload: FileValidationRequest, ctx: RequestContext = Depends(get_request_context)):
    """Check a file before any byte is sent; 400 explains the rejection."""
    sanitized = validate_file_upload(payload.file_name, payload.file_size, payload.mime_type, payload.category)
    return FileValidationResponse(valid=True, sanitized_file_name=sanitized)


@router.post(
    "/projects/{project_id}/uploads",
    response_model=UploadSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_upload(
    project_id: int,
    upload_in: UploadSessionCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    upload = files.create_upload_session(
        db,
        ctx,
        project_id,
        file_name=upload_in.file_name,
        file_size=upload_in.file_size,
        mime_type=upload_in.mime_type,
        category=upload_in.category,
        description=upload_in.description,
    )
    db.commit()
    db.refresh(upload)
    return upload


@router.get("/uploads/{session_id}", response_model=UploadSessionResponse)
def get_upload(session_id: str, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)):
    return files.get_upload_session(db, ctx, session_id)


@router.put("/uploads/{session_id}/chunks/{index}", response_model=UploadSessionResponse)
def put_chunk(
    session_id: str,
    index: int,
    data: bytes = Body(..., media_type="application/octet-stream"),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    blobs: BlobStore = Depends(get_blob_store),
):
    upload = files.put_chunk(db, blobs, ctx, session_id, index, data)
    db.commit()
    db.refresh(upload)
    return upload


@router.post("/uploads/{session_id}/complete", response_model=FileUploadResponse, status_code=status.HTTP_201_CREATED)
def complete_upload(
    session_id: str,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    blobs: BlobStore = Depends(get_blob_store),
):
    record = files.complete_upload(db, blobs, ctx, session_id)
    db.commit()
    db.refresh(record)
    return record


@router.delete("/uploads/{session_id}", response_model=UploadSessionResponse)
def cancel_upload(
    session_id: str,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    blobs: BlobStore = Depends(get_blob_store),
):
    upload = files.cancel_upload(db, blobs, ctx, session_id)
    db.commit()
    db.refresh(upload)
    return upload


@router.get("/projects/{project_id}/files", response_model=List[FileUploadResponse])
def list_files(
    project_id: int,
    category: Optional[str] = Query(None, description="Only files of this category"),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return files.list_files(db, ctx, project_id, category)


@router.delete("/files/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    blobs: BlobStore = Depends(get_blob_store),
):
    files.delete_file(db, blobs, ctx, file_id)
    db.commit()


def _attachment(record, content: bytes) -> Response:
    return Response(
        content=content,
        media_type=record.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{record.filename}"'},
    )


@router.get("/files/{file_id}/download")
def download_file(
    file_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    blobs: BlobStore = Depends(get_blob_store),
):
    record, content = files.read_file(db, blobs, ctx, file_id)
    return _attachment(record, content)


@router.get("/files/{file_id}/download-url", response_model=DownloadLinkResponse)
def create_download_url(
    file_id: int,
    request: Request,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Signed link for players that cannot send an Authorization header."""
    token, expires_at = files.issue_download_token(db, ctx, file_id)
    return DownloadLinkResponse(url=str(request.url_for("download_signed_file", token=token)), expires_at=expires_at)


@router.get("/downloads/{token}", name="download_signed_file")
def download_signed_file(
    token: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    record, content = files.read_file_with_token(db, blobs, token)
    return _attachment(record, content)
