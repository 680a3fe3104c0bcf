"""API request / response schemas for the HTTP endpoints.

- **Create** schemas validate user input and provide defaults.
- **Update** schemas allow partial updates via ``exclude_unset``.
- **Response** schemas serialize ORM rows via ``from_attributes``.

Input-format rules stay shallow on purpose (lengths, patterns); business
rules such as "role cannot be owner" are enforced by the policy layer so they
surface as typed errors rather than 422s.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from workhive.server.models.enums import (
    ActivityAction,
    AttachmentEntityType,
    EntityType,
    ProjectStatus,
    TaskPriority,
    TaskStatus,
    WorkspaceRole,
)

SLUG_PATTERN = r"^[a-z0-9]+(-[a-z0-9]+)*$"
KEY_PATTERN = r"^[A-Z0-9]{1,10}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    """Public view of a user embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    first_name: str
    last_name: str


class CurrentUserResponse(UserSummary):
    is_super_admin: bool
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


# -- Credentials -----------------------------------------------------------------
# Password strength is a business rule (``passwords.validate_password``); the
# lengths here only bound the payload.


class UserRegister(BaseModel):
    email: str = Field(min_length=3, max_length=254, pattern=EMAIL_PATTERN)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)


class ResetPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    code: str = Field(pattern=r"^\d{6}$")
    new_password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: CurrentUserResponse


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceSettings(BaseModel):
    allow_member_project_creation: bool = False


class WorkspaceSettingsUpdate(BaseModel):
    allow_member_project_creation: bool | None = None


class WorkspaceCreate(BaseModel):
    """Input for creating a new workspace."""

    name: str = Field(min_length=3, max_length=100)
    slug: str | None = Field(
        default=None,
        min_length=3,
        max_length=100,
        pattern=SLUG_PATTERN,
        description="Optional; derived from name if omitted.  Suffixed if taken.",
    )
    description: str | None = Field(default=None, max_length=500)
    logo: str | None = None


class WorkspaceUpdate(BaseModel):
    """Partial workspace update.  The slug is immutable."""

    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    logo: str | None = None
    settings: WorkspaceSettingsUpdate | None = None


class WorkspaceResponse(BaseModel):
    """Serialized workspace returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    workspace_id: str
    name: str
    slug: str
    description: str | None = None
    logo: str | None = None
    owner_id: str
    settings: WorkspaceSettings
    created_at: datetime
    updated_at: datetime
    role: WorkspaceRole | None = Field(default=None, description="Caller's role, when resolved.")
    joined_at: datetime | None = None


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


class MemberInvite(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    role: WorkspaceRole = WorkspaceRole.MEMBER


class MemberRoleUpdate(BaseModel):
    role: WorkspaceRole


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: str
    workspace_id: str
    user: UserSummary
    role: WorkspaceRole
    invited_by: str | None = None
    joined_at: datetime


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class LabelCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: str = Field(default="#6b7280", pattern=r"^#[0-9a-fA-F]{6}$")
    description: str | None = Field(default=None, max_length=200)


class LabelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label_id: str
    workspace_id: str
    name: str
    color: str
    description: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    key: str | None = Field(
        default=None,
        pattern=KEY_PATTERN,
        description="Optional; derived from name if omitted.  Suffixed if taken.",
    )
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    start_date: datetime | None = None
    due_date: datetime | None = None


class ProjectUpdate(BaseModel):
    """Partial project update.  The key is immutable."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    status: ProjectStatus | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    workspace_id: str
    name: str
    key: str
    description: str | None = None
    owner_id: str
    status: ProjectStatus
    start_date: datetime | None = None
    due_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_ids: list[str] = Field(default_factory=list)
    label_ids: list[str] = Field(default_factory=list)
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)


class TaskUpdate(BaseModel):
    """Partial task update.  The ticket number is immutable."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_ids: list[str] | None = None
    label_ids: list[str] | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: str
    project_id: str
    ticket_number: int
    ticket_id: str = Field(description="Display id, '{project key}-{ticket number}'.")
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    reporter_id: str
    assignee_ids: list[str]
    label_ids: list[str]
    due_date: datetime | None = None
    estimated_hours: float | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    comment_id: str
    task_id: str
    author_id: str
    content: str
    is_edited: bool
    edited_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attachment_id: str
    workspace_id: str
    entity_type: AttachmentEntityType
    entity_id: str
    uploaded_by: str
    original_name: str
    mime_type: str
    file_size: int
    created_at: datetime


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    activity_id: str
    workspace_id: str
    project_id: str | None = None
    user_id: str
    entity_type: EntityType
    entity_id: str
    action: ActivityAction
    changes: dict
    description: str | None = None
    created_at: datetime
