"""Cascading soft delete.

Deleting a workspace, project or task stamps one captured instant onto the
root and onto every dependent row that is still live, so "what was deleted
together" can be reconstructed by timestamp.  Nothing is hard-deleted.

The functions here only stage batch UPDATEs on the caller's session; the
caller commits once, which makes the whole cascade a single transaction.
They are idempotent: running one again with the root's own ``deleted_at``
only touches dependents that are still live (used by the reconcile job).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import ColumnElement, and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.db.tables import (
    ActivityLog,
    Attachment,
    Comment,
    Label,
    Project,
    Task,
    Workspace,
    WorkspaceMember,
)
from workhive.server.models.enums import AttachmentEntityType


@dataclass
class CascadeResult:
    deleted_at: datetime
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


async def _mark_deleted(db: AsyncSession, table: type, condition: ColumnElement[bool], deleted_at: datetime) -> int:
    stmt = (
        update(table)
        .where(condition, table.deleted_at.is_(None))
        .values(deleted_at=deleted_at)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0


async def _ids(db: AsyncSession, column: ColumnElement, condition: ColumnElement[bool]) -> list[str]:
    result = await db.execute(select(column).where(condition))
    return list(result.scalars().all())


def _attached_to(entity_type: AttachmentEntityType, ids: Sequence[str]) -> ColumnElement[bool]:
    return and_(Attachment.entity_type == entity_type, Attachment.entity_id.in_(ids))


async def cascade_workspace_delete(
    db: AsyncSession,
    workspace: Workspace,
    *,
    deleted_at: datetime | None = None,
) -> CascadeResult:
    """Soft-delete *workspace* and everything scoped to it."""
    deleted_at = deleted_at or datetime.now(UTC)
    if workspace.deleted_at is None:
        workspace.deleted_at = deleted_at
    result = CascadeResult(deleted_at=deleted_at)
    workspace_id = workspace.workspace_id

    # Directly scoped to the workspace.
    result.counts["members"] = await _mark_deleted(
        db, WorkspaceMember, WorkspaceMember.workspace_id == workspace_id, deleted_at
    )
    result.counts["labels"] = await _mark_deleted(db, Label, Label.workspace_id == workspace_id, deleted_at)
    result.counts["projects"] = await _mark_deleted(db, Project, Project.workspace_id == workspace_id, deleted_at)
    result.counts["activity_logs"] = await _mark_deleted(
        db, ActivityLog, ActivityLog.workspace_id == workspace_id, deleted_at
    )
    result.counts["attachments"] = await _mark_deleted(
        db, Attachment, Attachment.workspace_id == workspace_id, deleted_at
    )

    # Scoped through projects.
    project_ids = await _ids(db, Project.project_id, Project.workspace_id == workspace_id)
    result.counts["tasks"] = 0
    result.counts["comments"] = 0
    if project_ids:
        task_ids = await _ids(db, Task.task_id, Task.project_id.in_(project_ids))
        result.counts["tasks"] = await _mark_deleted(db, Task, Task.project_id.in_(project_ids), deleted_at)
        if task_ids:
            result.counts["comments"] = await _mark_deleted(db, Comment, Comment.task_id.in_(task_ids), deleted_at)

    return result


async def cascade_project_delete(
    db: AsyncSession,
    project: Project,
    *,
    deleted_at: datetime | None = None,
) -> CascadeResult:
    """Soft-delete *project*, its tasks, their comments and every attachment on them."""
    deleted_at = deleted_at or datetime.now(UTC)
    if project.deleted_at is None:
        project.deleted_at = deleted_at
    result = CascadeResult(deleted_at=deleted_at)

    task_ids = await _ids(db, Task.task_id, Task.project_id == project.project_id)
    comment_ids = await _ids(db, Comment.comment_id, Comment.task_id.in_(task_ids)) if task_ids else []

    result.counts["tasks"] = await _mark_deleted(db, Task, Task.project_id == project.project_id, deleted_at)
    result.counts["comments"] = (
        await _mark_deleted(db, Comment, Comment.comment_id.in_(comment_ids), deleted_at) if comment_ids else 0
    )

    targets = [_attached_to(AttachmentEntityType.PROJECT, [project.project_id])]
    if task_ids:
        targets.append(_attached_to(AttachmentEntityType.TASK, task_ids))
    if comment_ids:
        targets.append(_attached_to(AttachmentEntityType.COMMENT, comment_ids))
    result.counts["attachments"] = await _mark_deleted(db, Attachment, or_(*targets), deleted_at)

    return result


async def cascade_task_delete(
    db: AsyncSession,
    task: Task,
    *,
    deleted_at: datetime | None = None,
) -> CascadeResult:
    """Soft-delete *task*, its comments and the attachments on both."""
    deleted_at = deleted_at or datetime.now(UTC)
    if task.deleted_at is None:
        task.deleted_at = deleted_at
    result = CascadeResult(deleted_at=deleted_at)

    comment_ids = await _ids(db, Comment.comment_id, Comment.task_id == task.task_id)
    result.counts["comments"] = await _mark_deleted(db, Comment, Comment.task_id == task.task_id, deleted_at)

    targets = [_attached_to(AttachmentEntityType.TASK, [task.task_id])]
    if comment_ids:
        targets.append(_attached_to(AttachmentEntityType.COMMENT, comment_ids))
    result.counts["attachments"] = await _mark_deleted(db, Attachment, or_(*targets), deleted_at)

    return result
