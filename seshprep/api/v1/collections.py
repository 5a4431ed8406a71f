"""Collection endpoints: releases grouping several projects"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from seshprep.context import RequestContext
from seshprep.database import get_db
from seshprep.dependencies import get_request_context
from seshprep.errors import ValidationFailed
from seshprep.models import Collection, Project, ReleaseType
from seshprep.schemas import (
    CollectionCreate,
    CollectionDetailResponse,
    CollectionResponse,
    CollectionUpdate,
    ProjectResponse,
)
from seshprep.services.permissions import (
    accessible_collections_filter,
    accessible_projects_filter,
    require_collection_capability,
    require_project_capability,
)
from seshprep.services.progress import average_progress, task_progress
from seshprep.services.validation import sanitize_html, validate_collection_title

router = APIRouter()

RELEASE_TYPES = tuple(release.value for release in ReleaseType)


def _validate_release_type(release_type: Optional[str]) -> Optional[str]:
    if release_type is None:
        return None
    if release_type not in RELEASE_TYPES:
        raise ValidationFailed(f"Release type must be one of: {', '.join(RELEASE_TYPES)}")
    return release_type


def _serialize_collection(db: Session, ctx: RequestContext, collection: Collection) -> CollectionDetailResponse:
    # only projects the caller may see are listed and averaged
    projects = (
        db.query(Project)
        .filter(Project.collection_id == collection.id, accessible_projects_filter(ctx))
        .order_by(Project.created_at.asc(), Project.id.asc())
        .all()
    )
    progress = average_progress([task_progress(project.tasks) for project in projects])
    response = CollectionDetailResponse.model_validate(collection)
    response.projects = [ProjectResponse.model_validate(project) for project in projects]
    response.progress = progress
    return response


@router.get("", response_model=List[CollectionResponse])
def list_collections(db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)):
    return (
        db.query(Collection)
        .filter(accessible_collections_filter(ctx))
        .order_by(Collection.created_at.desc(), Collection.id.desc())
        .all()
    )


@router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
def create_collection(
    collection_in: CollectionCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    collection = Collection(
        title=validate_collection_title(collection_in.title),
        artist=sanitize_html(collection_in.artist or "") or None,
        release_type=_validate_release_type(collection_in.release_type),
        due_date=collection_in.due_date,
        owner_id=ctx.account_id,
    )
    db.add(collection)
    db.commit()
    db.refresh(collection)
    return collection


@router.get("/{collection_id}", response_model=CollectionDetailResponse)
def get_collection(
    collection_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    collection = require_collection_capability(db, ctx, collection_id)
    return _serialize_collection(db, ctx, collection)


@router.patch("/{collection_id}", response_model=CollectionResponse)
def update_collection(
    collection_id: int,
    collection_in: CollectionUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    collection = require_collection_capability(db, ctx, collection_id, "can_manage_project")
    changes = collection_in.model_dump(exclude_unset=True)
    if "title" in changes:
        collection.title = validate_collection_title(changes["title"])
    if "artist" in changes:
        collection.artist = sanitize_html(changes["artist"] or "") or None
    if "release_type" in changes:
        collection.release_type = _validate_release_type(changes["release_type"])
    if "due_date" in changes:
        collection.due_date = changes["due_date"]
    db.commit()
    db.refresh(collection)
    return collection


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_collection(
    collection_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    """Projects stay; they are only detached from the collection."""
    collection = require_collection_capability(db, ctx, collection_id, "can_manage_project")
    db.query(Project).filter(Project.collection_id == collection.id).update(
        {Project.collection_id: None}, synchronize_session=False
    )
    db.delete(collection)
    db.commit()


@router.put("/{collection_id}/projects/{project_id}", response_model=ProjectResponse)
def add_project_to_collection(
    collection_id: int,
    project_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    collection = require_collection_capability(db, ctx, collection_id, "can_manage_project")
    project = require_project_capability(db, ctx, project_id, "can_manage_project")
    project.collection_id = collection.id
    db.commit()
    db.refresh(project)
    return project


@router.delete("/{collection_id}/projects/{project_id}", response_model=ProjectResponse)
def remove_project_from_collection(
    collection_id: int,
    project_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    collection = require_collection_capability(db, ctx, collection_id, "can_manage_project")
    project = require_project_capability(db, ctx, project_id, "can_manage_project")
    if project.collection_id != collection.id:
        raise ValidationFailed("Project is not part of this collection")
    project.collection_id = None
    db.commit()
    db.refresh(project)
    return project


@router.get("/{collection_id}/progress")
def read_collection_progress(
    collection_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    collection = require_collection_capability(db, ctx, collection_id)
    return {"collection_id": collection.id, "progress": _serialize_collection(db, ctx, collection).progress}
