"""Project endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from seshprep.context import RequestContext
from seshprep.database import get_db
from seshprep.dependencies import get_request_context
from seshprep.errors import ValidationFailed
from seshprep.models import Project
from seshprep.schemas import (
    PermissionsResponse,
    ProgressResponse,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
)
from seshprep.services.permissions import (
    accessible_projects_filter,
    get_project_permissions,
    require_collection_capability,
    require_project_capability,
)
from seshprep.services.progress import task_progress
from seshprep.services.validation import (
    sanitize_html,
    validate_bpm,
    validate_project_title,
    validate_sample_rate,
    validate_song_key,
)

router = APIRouter()


def _validate_artist(artist: Optional[str]) -> str:
    artist = sanitize_html(artist or "")
    if not artist:
        raise ValidationFailed("Artist is required")
    if len(artist) > 100:
        raise ValidationFailed("Artist must be less than 100 characters")
    return artist


@router.get("", response_model=List[ProjectResponse])
def list_projects(db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)):
    return (
        db.query(Project)
        .filter(accessible_projects_filter(ctx))
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    collection_id = None
    if project_in.collection_id is not None:
        collection_id = require_collection_capability(
            db, ctx, project_in.collection_id, "can_manage_project"
        ).id

    project = Project(
        title=validate_project_title(project_in.title),
        artist=_validate_artist(project_in.artist),
        bpm=validate_bpm(project_in.bpm),
        sample_rate=validate_sample_rate(project_in.sample_rate),
        song_key=validate_song_key(project_in.song_key),
        due_date=project_in.due_date,
        producer_id=ctx.account_id,
        collection_id=collection_id,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(project_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)):
    return require_project_capability(db, ctx, project_id)


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    project = require_project_capability(db, ctx, project_id, "can_edit_tasks")
    changes = project_in.model_dump(exclude_unset=True)

    if "collection_id" in changes and changes["collection_id"] != project.collection_id:
        require_project_capability(db, ctx, project_id, "can_manage_project")
        if changes["collection_id"] is not None:
            require_collection_capability(db, ctx, changes["collection_id"], "can_manage_project")
        project.collection_id = changes["collection_id"]

    if "title" in changes:
        project.title = validate_project_title(changes["title"])
    if "artist" in changes:
        project.artist = _validate_artist(changes["artist"])
    if "bpm" in changes:
        project.bpm = validate_bpm(changes["bpm"])
    if "sample_rate" in changes:
        project.sample_rate = validate_sample_rate(changes["sample_rate"])
    if "song_key" in changes:
        project.song_key = validate_song_key(changes["song_key"])
    if "due_date" in changes:
        project.due_date = changes["due_date"]

    db.commit()
    db.refresh(project)
    return project


@router.get("/{project_id}/permissions", response_model=PermissionsResponse)
def read_project_permissions(
    project_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    project = require_project_capability(db, ctx, project_id)
    return PermissionsResponse(**get_project_permissions(db, ctx, project).as_dict())


@router.get("/{project_id}/progress", response_model=ProgressResponse)
def read_project_progress(
    project_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    project = require_project_capability(db, ctx, project_id)
    report = task_progress(project.tasks)
    return ProgressResponse(
        total_tasks=report.total_tasks,
        completed_tasks=report.completed_tasks,
        overall=report.overall,
        phases=report.phases,
    )
