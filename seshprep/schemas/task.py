"""Schemas for tasks"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from seshprep.models.task import TaskCategory, TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    category: Optional[TaskCategory] = None
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None
    external_link: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    category: Optional[TaskCategory] = None
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None
    external_link: Optional[str] = None


class TaskResponse(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    category: Optional[TaskCategory] = None
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None
    external_link: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
