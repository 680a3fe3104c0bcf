"""Data models for the Workhive server."""

from workhive.server.models.api import (
    ActivityResponse,
    AttachmentResponse,
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    CurrentUserResponse,
    ForgotPasswordRequest,
    LabelCreate,
    LabelResponse,
    LoginRequest,
    MemberInvite,
    MemberResponse,
    MemberRoleUpdate,
    MessageResponse,
    PasswordChange,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    RefreshRequest,
    ResetPasswordRequest,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
    TokenResponse,
    UserRegister,
    UserSummary,
    WorkspaceCreate,
    WorkspaceResponse,
    WorkspaceSettings,
    WorkspaceUpdate,
)
from workhive.server.models.enums import (
    ActivityAction,
    AttachmentEntityType,
    EntityType,
    ProjectStatus,
    TaskPriority,
    TaskStatus,
    WorkspaceRole,
)

__all__ = [
    # Enums
    "ActivityAction",
    # API schemas
    "ActivityResponse",
    "AttachmentEntityType",
    "AttachmentResponse",
    "CommentCreate",
    "CommentResponse",
    "CommentUpdate",
    "CurrentUserResponse",
    "EntityType",
    "ForgotPasswordRequest",
    "LabelCreate",
    "LabelResponse",
    "LoginRequest",
    "MemberInvite",
    "MemberResponse",
    "MemberRoleUpdate",
    "MessageResponse",
    "PasswordChange",
    "ProjectCreate",
    "ProjectResponse",
    "ProjectStatus",
    "ProjectUpdate",
    "RefreshRequest",
    "ResetPasswordRequest",
    "TaskCreate",
    "TaskPriority",
    "TaskResponse",
    "TaskStatus",
    "TaskUpdate",
    "TokenResponse",
    "UserRegister",
    "UserSummary",
    "WorkspaceCreate",
    "WorkspaceResponse",
    "WorkspaceRole",
    "WorkspaceSettings",
    "WorkspaceUpdate",
]
