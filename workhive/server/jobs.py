"""Maintenance jobs run from the CLI.

- :func:`audit_soft_deletes` counts soft-deleted rows per table.
- :func:`reconcile_cascades` finds deleted workspaces, projects and tasks
  that still have live dependents and, when asked, re-runs the cascade with
  the root's own ``deleted_at`` so the repaired rows share its timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import ColumnElement, Select, and_, func, or_, select
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
from workhive.server.managers.cascade import cascade_project_delete, cascade_task_delete, cascade_workspace_delete
from workhive.server.models.enums import AttachmentEntityType

AUDITED_TABLES: tuple[type, ...] = (
    Workspace,
    WorkspaceMember,
    Label,
    Project,
    Task,
    Comment,
    Attachment,
    ActivityLog,
)


async def audit_soft_deletes(db: AsyncSession) -> dict[str, int]:
    """Number of soft-deleted rows per table."""
    counts: dict[str, int] = {}
    for table in AUDITED_TABLES:
        count = await db.scalar(select(func.count()).select_from(table).where(table.deleted_at.is_not(None)))
        counts[table.__tablename__] = count or 0
    logger.info("Soft-delete audit: {} (total={})", counts, sum(counts.values()))
    return counts


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@dataclass
class Leftover:
    """A deleted root whose dependents are not all deleted."""

    kind: str
    root_id: str
    deleted_at: datetime
    live_dependents: int


async def _live(db: AsyncSession, table: type, condition: ColumnElement[bool]) -> int:
    count = await db.scalar(select(func.count()).select_from(table).where(condition, table.deleted_at.is_(None)))
    return count or 0


def _attachments_on(entity_type: AttachmentEntityType, ids: Select) -> ColumnElement[bool]:
    return and_(Attachment.entity_type == entity_type, Attachment.entity_id.in_(ids))


async def _workspace_leftovers(db: AsyncSession, workspace_id: str) -> int:
    project_ids = select(Project.project_id).where(Project.workspace_id == workspace_id)
    task_ids = select(Task.task_id).where(Task.project_id.in_(project_ids))
    return (
        await _live(db, WorkspaceMember, WorkspaceMember.workspace_id == workspace_id)
        + await _live(db, Label, Label.workspace_id == workspace_id)
        + await _live(db, Project, Project.workspace_id == workspace_id)
        + await _live(db, ActivityLog, ActivityLog.workspace_id == workspace_id)
        + await _live(db, Attachment, Attachment.workspace_id == workspace_id)
        + await _live(db, Task, Task.project_id.in_(project_ids))
        + await _live(db, Comment, Comment.task_id.in_(task_ids))
    )


async def _project_leftovers(db: AsyncSession, project_id: str) -> int:
    task_ids = select(Task.task_id).where(Task.project_id == project_id)
    comment_ids = select(Comment.comment_id).where(Comment.task_id.in_(task_ids))
    attachments = or_(
        and_(Attachment.entity_type == AttachmentEntityType.PROJECT, Attachment.entity_id == project_id),
        _attachments_on(AttachmentEntityType.TASK, task_ids),
        _attachments_on(AttachmentEntityType.COMMENT, comment_ids),
    )
    return (
        await _live(db, Task, Task.project_id == project_id)
        + await _live(db, Comment, Comment.task_id.in_(task_ids))
        + await _live(db, Attachment, attachments)
    )


async def _task_leftovers(db: AsyncSession, task_id: str) -> int:
    comment_ids = select(Comment.comment_id).where(Comment.task_id == task_id)
    attachments = or_(
        and_(Attachment.entity_type == AttachmentEntityType.TASK, Attachment.entity_id == task_id),
        _attachments_on(AttachmentEntityType.COMMENT, comment_ids),
    )
    return await _live(db, Comment, Comment.task_id == task_id) + await _live(db, Attachment, attachments)


async def _deleted_roots(db: AsyncSession, table: type) -> list:
    # Cascades update rows in bulk, so refresh anything already in the session.
    stmt = select(table).where(table.deleted_at.is_not(None)).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_leftovers(db: AsyncSession) -> list[tuple[Leftover, Workspace | Project | Task]]:
    """Every deleted workspace / project / task with live dependents."""
    found: list[tuple[Leftover, Workspace | Project | Task]] = []

    for workspace in await _deleted_roots(db, Workspace):
        live = await _workspace_leftovers(db, workspace.workspace_id)
        if live:
            found.append((Leftover("workspace", workspace.workspace_id, workspace.deleted_at, live), workspace))

    for project in await _deleted_roots(db, Project):
        live = await _project_leftovers(db, project.project_id)
        if live:
            found.append((Leftover("project", project.project_id, project.deleted_at, live), project))

    for task in await _deleted_roots(db, Task):
        live = await _task_leftovers(db, task.task_id)
        if live:
            found.append((Leftover("task", task.task_id, task.deleted_at, live), task))

    return found


async def reconcile_cascades(db: AsyncSession, *, apply: bool = False) -> list[Leftover]:
    """Report (and with *apply*, repair) incomplete cascades.

    Workspaces are repaired first so that projects and tasks they cover are
    stamped with the workspace's timestamp rather than their own.
    """
    found = await find_leftovers(db)
    for leftover, _root in found:
        logger.warning(
            "Incomplete cascade: {} {} deleted at {} has {} live dependents",
            leftover.kind,
            leftover.root_id,
            leftover.deleted_at.isoformat(),
            leftover.live_dependents,
        )
    if not apply or not found:
        return [leftover for leftover, _root in found]

    for leftover, root in found:
        if isinstance(root, Workspace):
            await cascade_workspace_delete(db, root, deleted_at=root.deleted_at)
        elif isinstance(root, Project):
            await cascade_project_delete(db, root, deleted_at=root.deleted_at)
        else:
            await cascade_task_delete(db, root, deleted_at=root.deleted_at)
        logger.info("Reconciled {} {}", leftover.kind, leftover.root_id)
    await db.commit()
    return [leftover for leftover, _root in found]
