"""Project files: version numbers, chunked upload sessions and deletion.

Chunks are staged as one blob per index so a resent chunk simply overwrites
itself. On completion the chunks are concatenated into
``{project}/{category}/{version}-{name}`` in the category's bucket.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seshprep.blobstore import STAGING_BUCKET, BlobStore, bucket_for_category, with_retries
from seshprep.config import settings
from seshprep.context import RequestContext
from seshprep.errors import (
    AccessDenied,
    AlreadyExists,
    NotAuthenticated,
    NotFound,
    TransientStorageError,
    ValidationFailed,
)
from seshprep.models import FileUpload, FileVersionCounter, UploadSession, UploadStatus, User
from seshprep.security import create_access_token, decode_access_token
from seshprep.services.billing import require_pro_access
from seshprep.services.permissions import require_project_capability
from seshprep.services.validation import validate_file_description, validate_file_upload
from seshprep.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

VERSION_ATTEMPTS = 3
DOWNLOAD_PURPOSE = "download"
INVALID_DOWNLOAD_LINK = "Invalid or expired download link"


def next_file_version(db: Session, project_id: int, category: str) -> int:
    """Hand out the next version for ``(project_id, category)``.

    The increment is a single ``UPDATE ... RETURNING`` so two uploads can
    never read the same value. The first upload of a category inserts the
    counter row; losing that insert race falls back to the update.
    """
    for _ in range(VERSION_ATTEMPTS):
        version = db.execute(
            update(FileVersionCounter)
            .where(
                FileVersionCounter.project_id == project_id,
                FileVersionCounter.category == category,
            )
            .values(last_version=FileVersionCounter.last_version + 1)
            .returning(FileVersionCounter.last_version)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()
        if version is not None:
            return version

        try:
            with db.begin_nested():
                db.execute(
                    insert(FileVersionCounter).values(
                        project_id=project_id, category=category, last_version=1
                    )
                )
            return 1
        except IntegrityError:
            logger.info("Version counter for project %s/%s created concurrently", project_id, category)

    raise AlreadyExists("Could not assign a file version, please retry the upload")


def file_path(project_id: int, category: str, version: int, sanitized_name: str) -> str:
    return f"{project_id}/{category}/{version}-{sanitized_name}"


def chunk_path(upload: UploadSession, index: int) -> str:
    return f"{upload.staging_path}/{index:06d}"


def staged_chunks(upload: UploadSession) -> List[str]:
    return [chunk_path(upload, index) for index in range(upload.next_chunk_index or 0)]


# -- upload sessions -----------------------------------------------------------


def create_upload_session(
    db: Session,
    ctx: RequestContext,
    project_id: int,
    file_name: str,
    file_size: int,
    mime_type: str,
    category: str,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> UploadSession:
    now = now or utcnow()
    project = require_project_capability(db, ctx, project_id, "can_edit_tasks")
    sanitized = validate_file_upload(file_name, file_size, mime_type, category)
    description = validate_file_description(description)
    require_pro_access(db, project, now=now)

    session_id = uuid.uuid4().hex
    upload = UploadSession(
        id=session_id,
        project_id=project.id,
        category=category,
        original_filename=file_name,
        sanitized_filename=sanitized,
        file_size=file_size,
        mime_type=mime_type,
        description=description,
        staging_path=f"{project.id}/{session_id}",
        received_bytes=0,
        next_chunk_index=0,
        status=UploadStatus.OPEN.value,
        created_by=ctx.account_id,
        created_at=now,
    )
    db.add(upload)
    db.flush()
    logger.info("Opened upload %s for project %s (%s, %d bytes)", session_id, project.id, category, file_size)
    return upload


def get_upload_session(db: Session, ctx: RequestContext, session_id: str) -> UploadSession:
    upload = db.get(UploadSession, session_id)
    if upload is None or upload.created_by != ctx.account_id:
        raise NotFound("Upload session not found")
    require_project_capability(db, ctx, upload.project_id, "can_edit_tasks")
    return upload


def _open_session(db: Session, ctx: RequestContext, session_id: str) -> UploadSession:
    upload = get_upload_session(db, ctx, session_id)
    if upload.status != UploadStatus.OPEN.value:
        raise ValidationFailed(f"Upload session is {upload.status}")
    return upload


def put_chunk(
    db: Session, blobs: BlobStore, ctx: RequestContext, session_id: str, index: int, data: bytes
) -> UploadSession:
    """Store chunk ``index``. Chunks arrive in order; a resent chunk is a no-op."""
    upload = _open_session(db, ctx, session_id)
    if index < upload.next_chunk_index:
        return upload
    if index > upload.next_chunk_index:
        raise ValidationFailed(f"Chunk {index} is out of order, expected {upload.next_chunk_index}")
    if not data:
        raise ValidationFailed("Chunk is empty")
    if upload.received_bytes + len(data) > upload.file_size:
        raise ValidationFailed("Upload exceeds the declared file size")

    path = chunk_path(upload, index)
    with_retries(lambda: blobs.put(STAGING_BUCKET, path, data))

    upload.received_bytes += len(data)
    upload.next_chunk_index = index + 1
    db.flush()
    return upload


def complete_upload(
    db: Session, blobs: BlobStore, ctx: RequestContext, session_id: str, now: Optional[datetime] = None
) -> FileUpload:
    """Assign the version, assemble the blob and record the file.

    The session is claimed with a conditional update first, so concurrent
    completions of one session record a single file. The claim and the
    version number are committed before the blob is written so the counter
    row is not locked while bytes are copied.
    """
    upload = _open_session(db, ctx, session_id)
    if upload.received_bytes != upload.file_size:
        raise ValidationFailed(
            f"Upload incomplete: received {upload.received_bytes} of {upload.file_size} bytes"
        )

    claimed = (
        db.query(UploadSession)
        .filter(UploadSession.id == upload.id, UploadSession.status == UploadStatus.OPEN.value)
        .update({UploadSession.status: UploadStatus.COMPLETING.value}, synchronize_session=False)
    )
    if claimed != 1:
        db.rollback()
        raise ValidationFailed("Upload session is already being completed")

    version = next_file_version(db, upload.project_id, upload.category)
    db.commit()

    path = file_path(upload.project_id, upload.category, version, upload.sanitized_filename)
    bucket = bucket_for_category(upload.category)
    parts = staged_chunks(upload)
    try:
        size = with_retries(lambda: blobs.compose(STAGING_BUCKET, parts, bucket, path))
        if size != upload.file_size:
            raise TransientStorageError(f"Stored {size} bytes for {path}, expected {upload.file_size}")
    except (TransientStorageError, FileNotFoundError):
        _release_claim(db, upload)
        raise

    record = FileUpload(
        project_id=upload.project_id,
        category=upload.category,
        file_path=path,
        filename=upload.sanitized_filename,
        original_filename=upload.original_filename,
        file_size=upload.file_size,
        mime_type=upload.mime_type,
        version=version,
        description=upload.description,
        uploaded_by=ctx.account_id,
        created_at=now or utcnow(),
    )
    db.add(record)
    db.flush()
    upload.status = UploadStatus.COMPLETED.value
    upload.file_upload_id = record.id
    db.flush()

    _drop_staged(blobs, upload, parts)
    logger.info("Stored %s/%s version %d for project %s", bucket, path, version, upload.project_id)
    return record


def _release_claim(db: Session, upload: UploadSession) -> None:
    """Reopen a session whose completion failed so the client can retry it."""
    db.rollback()
    db.query(UploadSession).filter(
        UploadSession.id == upload.id, UploadSession.status == UploadStatus.COMPLETING.value
    ).update({UploadSession.status: UploadStatus.OPEN.value}, synchronize_session=False)
    db.commit()
    logger.warning("Completion of upload %s failed, session reopened", upload.id)


def cancel_upload(db: Session, blobs: BlobStore, ctx: RequestContext, session_id: str) -> UploadSession:
    upload = _open_session(db, ctx, session_id)
    upload.status = UploadStatus.CANCELLED.value
    db.flush()
    _drop_staged(blobs, upload, staged_chunks(upload))
    return upload


def _drop_staged(blobs: BlobStore, upload: UploadSession, parts: List[str]) -> None:
    try:
        with_retries(lambda: blobs.delete(STAGING_BUCKET, parts))
    except TransientStorageError as exc:
        # retention cleanup only sweeps unfinished sessions, so these bytes stay behind
        logger.error("Could not drop staged chunks of upload %s: %s", upload.id, exc.message)


# -- stored files --------------------------------------------------------------


def list_files(
    db: Session, ctx: RequestContext, project_id: int, category: Optional[str] = None
) -> List[FileUpload]:
    project = require_project_capability(db, ctx, project_id)
    query = db.query(FileUpload).filter(FileUpload.project_id == project.id)
    if category:
        query = query.filter(FileUpload.category == category)
    return query.order_by(FileUpload.version.desc(), FileUpload.created_at.desc()).all()


def delete_file(db: Session, blobs: BlobStore, ctx: RequestContext, file_id: int) -> None:
    """Remove the blob first; the row only goes once storage agrees."""
    record = db.get(FileUpload, file_id)
    if record is None:
        raise NotFound("File not found")
    require_project_capability(db, ctx, record.project_id, "can_delete_tasks")

    with_retries(lambda: blobs.delete(bucket_for_category(record.category), [record.file_path]))
    db.query(UploadSession).filter(UploadSession.file_upload_id == record.id).update(
        {UploadSession.file_upload_id: None}, synchronize_session=False
    )
    db.delete(record)
    db.flush()
    logger.info("Deleted file %s (%s) from project %s", record.id, record.file_path, record.project_id)


# -- downloads -----------------------------------------------------------------


def get_file(db: Session, ctx: RequestContext, file_id: int) -> FileUpload:
    record = db.get(FileUpload, file_id)
    if record is None:
        raise NotFound("File not found")
    require_project_capability(db, ctx, record.project_id)
    return record


def _read_blob(blobs: BlobStore, record: FileUpload) -> bytes:
    try:
        return with_retries(lambda: blobs.read(bucket_for_category(record.category), record.file_path))
    except FileNotFoundError:
        logger.error("File %s has no stored content at %s", record.id, record.file_path)
        raise NotFound("File content not found")


def read_file(db: Session, blobs: BlobStore, ctx: RequestContext, file_id: int) -> Tuple[FileUpload, bytes]:
    record = get_file(db, ctx, file_id)
    return record, _read_blob(blobs, record)


def issue_download_token(
    db: Session, ctx: RequestContext, file_id: int, now: Optional[datetime] = None
) -> Tuple[str, datetime]:
    """Short-lived token that lets a player fetch the file without a bearer header."""
    record = get_file(db, ctx, file_id)
    ttl = timedelta(seconds=settings.DOWNLOAD_URL_TTL_SECONDS)
    token = create_access_token(
        ctx.account_id, expires_delta=ttl, extra_claims={"purpose": DOWNLOAD_PURPOSE, "file": record.id}
    )
    return token, (now or utcnow()) + ttl


def read_file_with_token(db: Session, blobs: BlobStore, token: str) -> Tuple[FileUpload, bytes]:
    """Serve a download link; the holder must still be able to view the project."""
    try:
        payload = decode_access_token(token)
    except NotAuthenticated:
        raise AccessDenied(INVALID_DOWNLOAD_LINK)
    if payload.get("purpose") != DOWNLOAD_PURPOSE or not payload.get("file"):
        raise AccessDenied(INVALID_DOWNLOAD_LINK)

    user = db.get(User, int(payload["sub"]))
    if user is None or not user.is_active:
        raise AccessDenied(INVALID_DOWNLOAD_LINK)
    return read_file(db, blobs, RequestContext.for_user(user), int(payload["file"]))
