"""Scheduled retention cleanup."""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from seshprep.blobstore import SESSIONS_BUCKET, STAGING_BUCKET, BlobStore, with_retries
from seshprep.config import settings
from seshprep.errors import TransientStorageError
from seshprep.models import (
    CollectionMember,
    FileCategory,
    FileUpload,
    InvitationToken,
    ProjectMember,
    UploadSession,
    UploadStatus,
)
from seshprep.services.files import staged_chunks
from seshprep.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    session_files: int = 0
    blob_failures: int = 0
    project_memberships: int = 0
    collection_memberships: int = 0
    invitation_tokens: int = 0
    upload_sessions: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def run_retention_cleanup(db: Session, blobs: BlobStore, now: Optional[datetime] = None) -> CleanupReport:
    """Delete data past its retention period and return what was removed.

    A blob that cannot be deleted is logged and its metadata is removed
    anyway, so one storage outage does not stall the rest of the run.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=settings.RETENTION_DAYS)
    report = CleanupReport()

    old_sessions = (
        db.query(FileUpload)
        .filter(FileUpload.category == FileCategory.SESSIONS.value, FileUpload.created_at < cutoff)
        .all()
    )
    if old_sessions:
        try:
            with_retries(lambda: blobs.delete(SESSIONS_BUCKET, [f.file_path for f in old_sessions]))
        except TransientStorageError as exc:
            report.blob_failures += len(old_sessions)
            logger.error("Error deleting %d session archives from storage: %s", len(old_sessions), exc.message)
        old_ids = [f.id for f in old_sessions]
        db.query(UploadSession).filter(UploadSession.file_upload_id.in_(old_ids)).update(
            {UploadSession.file_upload_id: None}, synchronize_session=False
        )
        report.session_files = (
            db.query(FileUpload).filter(FileUpload.id.in_(old_ids)).delete(synchronize_session=False)
        )

    report.project_memberships = (
        db.query(ProjectMember)
        .filter(ProjectMember.user_id.is_(None), ProjectMember.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    report.collection_memberships = (
        db.query(CollectionMember)
        .filter(CollectionMember.user_id.is_(None), CollectionMember.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    report.invitation_tokens = (
        db.query(InvitationToken)
        .filter(InvitationToken.used_at.is_(None), InvitationToken.expires_at < now)
        .delete(synchronize_session=False)
    )

    stale_before = now - timedelta(hours=settings.UPLOAD_SESSION_TTL_HOURS)
    stale_uploads = (
        db.query(UploadSession)
        .filter(
            UploadSession.status.in_([UploadStatus.OPEN.value, UploadStatus.COMPLETING.value]),
            UploadSession.created_at < stale_before,
        )
        .all()
    )
    for upload in stale_uploads:
        parts = staged_chunks(upload)
        try:
            with_retries(lambda: blobs.delete(STAGING_BUCKET, parts))
        except TransientStorageError as exc:
            report.blob_failures += 1
            logger.error("Error deleting staged chunks of upload %s: %s", upload.id, exc.message)
        upload.status = UploadStatus.CANCELLED.value
        report.upload_sessions += 1

    db.flush()
    logger.info("Retention cleanup finished: %s", report.as_dict())
    return report
