"""Schemas for projects, their permissions and progress"""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel


class ProjectCreate(BaseModel):
    title: str
    artist: str
    bpm: int
    sample_rate: int
    song_key: str
    due_date: Optional[datetime] = None
    collection_id: Optional[int] = None


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    bpm: Optional[int] = None
    sample_rate: Optional[int] = None
    song_key: Optional[str] = None
    due_date: Optional[datetime] = None
    collection_id: Optional[int] = None


class ProjectResponse(BaseModel):
    id: int
    title: str
    artist: str
    bpm: int
    sample_rate: int
    song_key: str
    due_date: Optional[datetime] = None
    producer_id: int
    collection_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PermissionsResponse(BaseModel):
    role: Optional[str] = None
    can_view: bool
    can_comment: bool
    can_edit_tasks: bool
    can_manage_project: bool
    can_invite_members: bool
    can_delete_tasks: bool


class ProgressResponse(BaseModel):
    total_tasks: int
    completed_tasks: int
    overall: float
    phases: Dict[str, float]
