"""SQLAlchemy ORM models for PostgreSQL.

These are the single source of truth for the database schema.  Alembic reads
``Base.metadata`` to autogenerate migration scripts.

Every entity is soft-deleted through its ``deleted_at`` column; nothing is
ever hard-deleted by the application.  The unique indexes below are what keep
identifiers and memberships consistent under concurrent writers:

- ``uq_workspaces_slug_active``: slug unique among non-deleted workspaces.
- ``uq_workspace_members_active``: one live membership per (workspace, user).
- ``uq_workspace_members_owner``: exactly one live OWNER per workspace.
- ``uq_projects_workspace_id``: (workspace, key) unique, deleted rows included.
- ``uq_tasks_project_id``: (project, ticket_number) unique, deleted rows included.

Uses SQLAlchemy 2.0 declarative style with ``Mapped`` type annotations.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Text, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Timezone-aware timestamp type for all datetime columns.
TimestampTZ = DateTime(timezone=True)

_ACTIVE = text("deleted_at IS NULL")


class Base(DeclarativeBase):
    """Declarative base with naming convention for constraints."""

    pass


# Apply naming convention to the metadata for deterministic constraint names.
Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(unique=True)
    first_name: Mapped[str]
    last_name: Mapped[str]
    is_active: Mapped[bool] = mapped_column(default=True, server_default="true")
    is_super_admin: Mapped[bool] = mapped_column(default=False, server_default="false")
    password_hash: Mapped[str | None]
    """bcrypt hash; ``None`` for accounts created without a password (CLI)."""
    last_login_at: Mapped[datetime | None] = mapped_column(TimestampTZ)
    token_version: Mapped[int] = mapped_column(default=0, server_default="0")
    """Bumped on logout and password changes; older refresh tokens stop working."""
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class PasswordReset(Base):
    """A one-time code mailed to a user who forgot their password.

    Only the bcrypt hash of the code is stored.  A request is spent once it is
    used, once it expires, or after too many wrong codes.
    """

    __tablename__ = "password_resets"
    __table_args__ = (Index("ix_password_resets_user_id", "user_id"),)

    reset_id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    otp_hash: Mapped[str]
    expires_at: Mapped[datetime] = mapped_column(TimestampTZ)
    attempts: Mapped[int] = mapped_column(default=0, server_default="0")
    used_at: Mapped[datetime | None] = mapped_column(TimestampTZ)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class Workspace(Base):
    __tablename__ = "workspaces"
    __table_args__ = (
        Index("uq_workspaces_slug_active", "slug", unique=True, postgresql_where=_ACTIVE),
        Index("ix_workspaces_owner_id", "owner_id"),
    )

    workspace_id: Mapped[str] = mapped_column(primary_key=True)
    name: Mapped[str]
    slug: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    logo: Mapped[str | None]
    owner_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    settings: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default='{"allow_member_project_creation": false}'
    )
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class WorkspaceMember(Base):
    __tablename__ = "workspace_members"
    __table_args__ = (
        Index(
            "uq_workspace_members_active",
            "workspace_id",
            "user_id",
            unique=True,
            postgresql_where=_ACTIVE,
        ),
        Index(
            "uq_workspace_members_owner",
            "workspace_id",
            unique=True,
            postgresql_where=text("role = 'owner' AND deleted_at IS NULL"),
        ),
        Index("ix_workspace_members_user_id", "user_id", "deleted_at"),
    )

    member_id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id"))
    user_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    role: Mapped[str] = mapped_column(server_default="member")
    invited_by: Mapped[str | None] = mapped_column(
        ForeignKey("users.user_id", name="fk_workspace_members_invited_by_users"),
    )
    joined_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class Label(Base):
    __tablename__ = "labels"
    __table_args__ = (
        Index("uq_labels_workspace_name_active", "workspace_id", "name", unique=True, postgresql_where=_ACTIVE),
    )

    label_id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id"))
    name: Mapped[str]
    color: Mapped[str] = mapped_column(server_default="#6b7280")
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        # Deliberately NOT partial: a key stays reserved after soft delete so
        # historical ticket ids never become ambiguous.
        UniqueConstraint("workspace_id", "key"),
        Index("ix_projects_workspace_status", "workspace_id", "status", "deleted_at"),
    )

    project_id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id"))
    name: Mapped[str]
    key: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    owner_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    status: Mapped[str] = mapped_column(server_default="active")
    start_date: Mapped[datetime | None] = mapped_column(TimestampTZ)
    due_date: Mapped[datetime | None] = mapped_column(TimestampTZ)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("project_id", "ticket_number"),
        Index("ix_tasks_project_status", "project_id", "status", "deleted_at"),
    )

    task_id: Mapped[str] = mapped_column(primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.project_id"))
    ticket_number: Mapped[int]
    title: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(server_default="todo")
    priority: Mapped[str] = mapped_column(server_default="medium")
    reporter_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    assignee_ids: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
    label_ids: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
    due_date: Mapped[datetime | None] = mapped_column(TimestampTZ)
    estimated_hours: Mapped[float | None]
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_task_id", "task_id", "deleted_at", "created_at"),)

    comment_id: Mapped[str] = mapped_column(primary_key=True)
    task_id: Mapped[str] = mapped_column(ForeignKey("tasks.task_id"))
    author_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    content: Mapped[str] = mapped_column(Text)
    is_edited: Mapped[bool] = mapped_column(default=False, server_default="false")
    edited_at: Mapped[datetime | None] = mapped_column(TimestampTZ)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class Attachment(Base):
    __tablename__ = "attachments"
    __table_args__ = (
        Index("ix_attachments_entity", "entity_type", "entity_id", "deleted_at"),
        Index("ix_attachments_workspace_id", "workspace_id"),
    )

    attachment_id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id"))
    entity_type: Mapped[str]
    entity_id: Mapped[str]
    uploaded_by: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    original_name: Mapped[str]
    mime_type: Mapped[str]
    file_size: Mapped[int]
    storage_key: Mapped[str]
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_workspace_created", "workspace_id", "created_at"),
        Index("ix_activity_logs_entity", "entity_type", "entity_id"),
    )

    activity_id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id"))
    project_id: Mapped[str | None] = mapped_column(ForeignKey("projects.project_id"))
    user_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    entity_type: Mapped[str]
    entity_id: Mapped[str]
    action: Mapped[str]
    changes: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(TimestampTZ)
