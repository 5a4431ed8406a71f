"""
Pydantic schemas for request/response validation
"""
from seshprep.schemas.user import (
    SignOutResponse,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
    UserSummary,
    UserUpdate,
)
from seshprep.schemas.project import (
    PermissionsResponse,
    ProgressResponse,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
)
from seshprep.schemas.collection import (
    CollectionCreate,
    CollectionDetailResponse,
    CollectionResponse,
    CollectionUpdate,
)
from seshprep.schemas.member import (
    CollectionInvitationResult,
    CollectionMemberResponse,
    InvitationLookupResponse,
    InvitationResult,
    MemberInvite,
    MemberRoleUpdate,
    ProjectMemberResponse,
)
from seshprep.schemas.task import TaskCreate, TaskResponse, TaskUpdate
from seshprep.schemas.file_upload import (
    DownloadLinkResponse,
    FileUploadResponse,
    FileValidationRequest,
    FileValidationResponse,
    UploadSessionCreate,
    UploadSessionResponse,
)
from seshprep.schemas.workspace import WebhookAck, WorkspaceResponse
from seshprep.schemas.password_reset import (
    MessageResponse,
    PasswordResetRequest,
    PasswordResetUpdate,
    RecoverySessionResponse,
)

__all__ = [
    "SignOutResponse",
    "Token",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "UserSummary",
    "UserUpdate",
    "PermissionsResponse",
    "ProgressResponse",
    "ProjectCreate",
    "ProjectResponse",
    "ProjectUpdate",
    "CollectionCreate",
    "CollectionDetailResponse",
    "CollectionResponse",
    "CollectionUpdate",
    "CollectionInvitationResult",
    "CollectionMemberResponse",
    "InvitationLookupResponse",
    "InvitationResult",
    "MemberInvite",
    "MemberRoleUpdate",
    "ProjectMemberResponse",
    "TaskCreate",
    "TaskResponse",
    "TaskUpdate",
    "DownloadLinkResponse",
    "FileUploadResponse",
    "FileValidationRequest",
    "FileValidationResponse",
    "UploadSessionCreate",
    "UploadSessionResponse",
    "WebhookAck",
    "WorkspaceResponse",
    "MessageResponse",
    "PasswordResetRequest",
    "PasswordResetUpdate",
    "RecoverySessionResponse",
]
