"""Workspace plan and trial endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from seshprep.database import get_db
from seshprep.dependencies import get_current_user
from seshprep.errors import ValidationFailed
from seshprep.models import PlanType, User, Workspace
from seshprep.schemas import WorkspaceResponse
from seshprep.services import billing
from seshprep.utils.timeutils import utcnow

router = APIRouter()


def _serialize_workspace(db: Session, workspace: Workspace) -> WorkspaceResponse:
    now = utcnow()
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        plan=workspace.plan,
        trial_start_at=workspace.trial_start_at,
        trial_expires_at=workspace.trial_expires_at,
        is_pro_access=billing.is_pro_access(workspace, now),
        is_trial_active=billing.is_trial_active(workspace, now),
        trial_days_left=billing.trial_days_left(workspace, now),
        storage_used_gb=billing.storage_usage_gb(db, workspace),
    )


@router.get("", response_model=WorkspaceResponse)
def read_workspace(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    workspace = billing.get_or_create_workspace(db, current_user)
    db.commit()
    return _serialize_workspace(db, workspace)


@router.post("/trial", response_model=WorkspaceResponse)
def start_trial(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    workspace = billing.get_or_create_workspace(db, current_user)
    if workspace.plan == PlanType.PRO.value:
        raise ValidationFailed("Workspace is already on the pro plan")
    billing.start_trial(db, workspace)
    db.commit()
    return _serialize_workspace(db, workspace)
