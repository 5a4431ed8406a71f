"""Task board endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from seshprep.context import RequestContext
from seshprep.database import get_db
from seshprep.dependencies import get_request_context
from seshprep.errors import NotFound, ValidationFailed
from seshprep.models import Project, ProjectMember, Task, TaskStatus
from seshprep.schemas import TaskCreate, TaskResponse, TaskUpdate
from seshprep.services.permissions import require_project_capability
from seshprep.services.validation import sanitize_task_description, validate_task_title, validate_url
from seshprep.utils.timeutils import utcnow

router = APIRouter()


def _validate_assignee(db: Session, project: Project, user_id: Optional[int]) -> Optional[int]:
    """Tasks go to the producer or an accepted member."""
    if user_id is None or user_id == project.producer_id:
        return user_id
    member = (
        db.query(ProjectMember.id)
        .filter(
            ProjectMember.project_id == project.id,
            ProjectMember.user_id == user_id,
            ProjectMember.accepted_at.isnot(None),
        )
        .first()
    )
    if member is None:
        raise ValidationFailed("Tasks can only be assigned to project members")
    return user_id


def _apply_status(task: Task, new_status: TaskStatus) -> None:
    if new_status == TaskStatus.COMPLETED:
        if task.status != TaskStatus.COMPLETED or task.completed_at is None:
            task.completed_at = utcnow()
    else:
        task.completed_at = None
    task.status = new_status


def _load_task(db: Session, ctx: RequestContext, task_id: int, capability: str) -> Task:
    task = db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    require_project_capability(db, ctx, task.project_id, capability)
    return task


@router.get("/projects/{project_id}/tasks", response_model=List[TaskResponse])
def list_tasks(project_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)):
    project = require_project_capability(db, ctx, project_id)
    return (
        db.query(Task)
        .filter(Task.project_id == project.id)
        .order_by(Task.created_at.asc(), Task.id.asc())
        .all()
    )


@router.post("/projects/{project_id}/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    project_id: int,
    task_in: TaskCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    project = require_project_capability(db, ctx, project_id, "can_edit_tasks")
    task = Task(
        title=validate_task_title(task_in.title),
        description=sanitize_task_description(task_in.description) or None,
        priority=task_in.priority,
        category=task_in.category,
        project_id=project.id,
        assigned_to=_validate_assignee(db, project, task_in.assigned_to),
        due_date=task_in.due_date,
        external_link=validate_url(task_in.external_link),
    )
    _apply_status(task, task_in.status)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    task = _load_task(db, ctx, task_id, "can_edit_tasks")
    changes = task_in.model_dump(exclude_unset=True)

    if "title" in changes:
        task.title = validate_task_title(changes["title"])
    if "description" in changes:
        task.description = sanitize_task_description(changes["description"]) or None
    if changes.get("priority") is not None:
        task.priority = changes["priority"]
    if "category" in changes:
        task.category = changes["category"]
    if "assigned_to" in changes:
        task.assigned_to = _validate_assignee(db, task.project, changes["assigned_to"])
    if "due_date" in changes:
        task.due_date = changes["due_date"]
    if "external_link" in changes:
        task.external_link = validate_url(changes["external_link"])
    if changes.get("status") is not None:
        _apply_status(task, changes["status"])

    db.commit()
    db.refresh(task)
    return task


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)):
    task = _load_task(db, ctx, task_id, "can_delete_tasks")
    db.delete(task)
    db.commit()
