"""Schemas for project and collection members"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class MemberInvite(BaseModel):
    email: str
    role: str


class MemberRoleUpdate(BaseModel):
    role: str
    reason: Optional[str] = None


class ProjectMemberResponse(BaseModel):
    id: int
    project_id: int
    user_id: Optional[int] = None
    email: str
    role: str
    invited_by: Optional[int] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CollectionMemberResponse(BaseModel):
    id: int
    collection_id: int
    user_id: Optional[int] = None
    email: str
    role: str
    invited_by: Optional[int] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvitationResult(BaseModel):
    member: ProjectMemberResponse
    email_sent: bool
    email_error: Optional[str] = None


class CollectionInvitationResult(BaseModel):
    member: CollectionMemberResponse
    email_sent: bool
    email_error: Optional[str] = None


class InvitationLookupResponse(BaseModel):
    email: str
    project_id: int
    project_title: Optional[str] = None
    expires_at: datetime
