"""Schemas for collections"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from seshprep.schemas.project import ProjectResponse


class CollectionCreate(BaseModel):
    title: str
    artist: Optional[str] = None
    release_type: Optional[str] = None
    due_date: Optional[datetime] = None


class CollectionUpdate(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    release_type: Optional[str] = None
    due_date: Optional[datetime] = None


class CollectionResponse(BaseModel):
    id: int
    title: str
    artist: Optional[str] = None
    release_type: Optional[str] = None
    due_date: Optional[datetime] = None
    owner_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CollectionDetailResponse(CollectionResponse):
    projects: List[ProjectResponse] = []
    progress: float = 0.0
