"""Shared enumerations used across the server."""

from __future__ import annotations

from enum import StrEnum

# -- Membership ----------------------------------------------------------------


class WorkspaceRole(StrEnum):
    """Role of a user inside one workspace, most privileged first."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


# -- Project -------------------------------------------------------------------


class ProjectStatus(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    ON_HOLD = "on-hold"


# -- Task ----------------------------------------------------------------------


class TaskStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# -- Activity / attachments ----------------------------------------------------


class ActivityAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    STATUS_CHANGED = "status_changed"


class EntityType(StrEnum):
    """Entity kinds an activity entry can point at."""

    WORKSPACE = "workspace"
    PROJECT = "project"
    TASK = "task"
    COMMENT = "comment"
    ATTACHMENT = "attachment"


class AttachmentEntityType(StrEnum):
    """Entity kinds a file can be attached to."""

    PROJECT = "project"
    TASK = "task"
    COMMENT = "comment"
