"""Operational endpoints for schedulers"""
import hmac

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from seshprep.blobstore import BlobStore
from seshprep.config import settings
from seshprep.database import get_db
from seshprep.dependencies import get_blob_store
from seshprep.errors import AccessDenied
from seshprep.services.retention import run_retention_cleanup

router = APIRouter()


@router.post("/retention-cleanup")
def retention_cleanup(
    cleanup_secret: str = Header(None, alias="X-Cleanup-Secret"),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    if not settings.CLEANUP_SECRET or not cleanup_secret or not hmac.compare_digest(
        cleanup_secret, settings.CLEANUP_SECRET
    ):
        raise AccessDenied("Invalid cleanup secret")
    report = run_retention_cleanup(db, blobs)
    db.commit()
    return {"message": "Retention cleanup completed", **report.as_dict()}
