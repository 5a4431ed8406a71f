"""SeshPrep Database Models"""
from seshprep.models.user import User
from seshprep.models.workspace import Workspace, PlanType
from seshprep.models.collection import Collection, ReleaseType
from seshprep.models.project import Project
from seshprep.models.project_member import ProjectMember, ProjectRole
from seshprep.models.collection_member import CollectionMember, CollectionRole
from seshprep.models.invitation import InvitationToken, InvitationRateLimit
from seshprep.models.role_change_audit import RoleChangeAudit
from seshprep.models.task import Task, TaskStatus, TaskPriority, TaskCategory
from seshprep.models.file_upload import (
    FileUpload,
    FileCategory,
    FileVersionCounter,
    UploadSession,
    UploadStatus,
)
from seshprep.models.recovery_grant import RecoveryGrant

__all__ = [
    "User",
    "Workspace",
    "PlanType",
    "Collection",
    "ReleaseType",
    "Project",
    "ProjectMember",
    "ProjectRole",
    "CollectionMember",
    "CollectionRole",
    "InvitationToken",
    "InvitationRateLimit",
    "RoleChangeAudit",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "TaskCategory",
    "FileUpload",
    "FileCategory",
    "FileVersionCounter",
    "UploadSession",
    "UploadStatus",
    "RecoveryGrant",
]
