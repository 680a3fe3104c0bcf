"""Task CRUD operations and ticket numbering.

Each task gets the next ticket number of its project at creation time.  The
number is read as ``max + 1`` and the insert is retried on the
``(project_id, ticket_number)`` index when a concurrent creator wins it.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import select

from workhive.server.db.tables import Project, Task, WorkspaceMember
from workhive.server.errors import BadRequestError, NotFoundError
from workhive.server.managers.activity import diff_changes, record_activity
from workhive.server.managers.cascade import CascadeResult, cascade_task_delete
from workhive.server.managers.identifiers import format_ticket_id, insert_with_retry, next_ticket_number
from workhive.server.managers.labels import existing_label_ids
from workhive.server.models.enums import ActivityAction, EntityType, TaskStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from workhive.server.models.api import TaskCreate, TaskUpdate

TICKET_CONSTRAINT = "uq_tasks_project_id"


def _unique(ids: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(ids))


async def _check_references(
    db: AsyncSession,
    workspace_id: str,
    *,
    assignee_ids: Sequence[str] = (),
    label_ids: Sequence[str] = (),
) -> None:
    if assignee_ids:
        result = await db.execute(
            select(WorkspaceMember.user_id).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id.in_(assignee_ids),
                WorkspaceMember.deleted_at.is_(None),
            )
        )
        missing = set(assignee_ids) - set(result.scalars().all())
        if missing:
            msg = f"Assignees must be members of the workspace: {', '.join(sorted(missing))}"
            raise BadRequestError(msg)

    if label_ids:
        missing = set(label_ids) - await existing_label_ids(db, workspace_id, label_ids)
        if missing:
            msg = f"Unknown labels: {', '.join(sorted(missing))}"
            raise BadRequestError(msg)


async def create_task(
    db: AsyncSession,
    project: Project,
    reporter_id: str,
    body: TaskCreate,
    *,
    retry_attempts: int = 3,
) -> Task:
    """Create a task in *project* with the next free ticket number.

    Raises ``BadRequestError`` for assignees outside the workspace or unknown
    labels, and ``ConflictError`` if concurrent creators keep winning the
    ticket number.
    """
    assignee_ids = _unique(body.assignee_ids)
    label_ids = _unique(body.label_ids)
    await _check_references(db, project.workspace_id, assignee_ids=assignee_ids, label_ids=label_ids)

    task_id = uuid.uuid4().hex

    async def build() -> Task:
        return Task(
            task_id=task_id,
            project_id=project.project_id,
            ticket_number=await next_ticket_number(db, project.project_id),
            title=body.title,
            description=body.description,
            status=body.status,
            priority=body.priority,
            reporter_id=reporter_id,
            assignee_ids=assignee_ids,
            label_ids=label_ids,
            due_date=body.due_date,
            estimated_hours=body.estimated_hours,
        )

    task = await insert_with_retry(
        db, build, constraint=TICKET_CONSTRAINT, attempts=retry_attempts, what="ticket number"
    )
    ticket_id = format_ticket_id(project.key, task.ticket_number)
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=reporter_id,
        entity_type=EntityType.TASK,
        entity_id=task_id,
        action=ActivityAction.CREATED,
        description=f"Created task {ticket_id}: {task.title}",
    )
    await db.commit()
    await db.refresh(task)
    logger.info("Task created: {} ({}, reporter={})", task_id, ticket_id, reporter_id)
    return task


async def list_tasks(
    db: AsyncSession,
    project_id: str,
    *,
    status: TaskStatus | None = None,
    assignee_id: str | None = None,
) -> list[Task]:
    """Live tasks of the project in ticket order."""
    stmt = (
        select(Task)
        .where(Task.project_id == project_id, Task.deleted_at.is_(None))
        .order_by(Task.ticket_number.asc())
    )
    if status is not None:
        stmt = stmt.where(Task.status == status)
    if assignee_id is not None:
        stmt = stmt.where(Task.assignee_ids.contains([assignee_id]))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_task_by_number(db: AsyncSession, project_id: str, ticket_number: int) -> Task:
    """Get a live task by ticket number.  Raises ``NotFoundError`` if missing or deleted."""
    result = await db.execute(
        select(Task).where(
            Task.project_id == project_id,
            Task.ticket_number == ticket_number,
            Task.deleted_at.is_(None),
        )
    )
    task = result.scalar_one_or_none()
    if task is None:
        msg = "Task not found"
        raise NotFoundError(msg)
    return task


async def get_task(db: AsyncSession, task_id: str) -> Task:
    task = await db.get(Task, task_id)
    if task is None or task.deleted_at is not None:
        msg = "Task not found"
        raise NotFoundError(msg)
    return task


async def update_task(
    db: AsyncSession,
    project: Project,
    task: Task,
    body: TaskUpdate,
    actor_id: str,
) -> tuple[Task, list[str]]:
    """Partially update *task*.

    Returns the task and the ids of users newly added as assignees, so the
    caller can notify them.
    """
    changes = body.model_dump(exclude_unset=True)
    for key in ("title", "status", "priority", "assignee_ids", "label_ids"):
        if changes.get(key, ...) is None:
            del changes[key]
    if not changes:
        return task, []

    if "assignee_ids" in changes:
        changes["assignee_ids"] = _unique(changes["assignee_ids"])
    if "label_ids" in changes:
        changes["label_ids"] = _unique(changes["label_ids"])
    await _check_references(
        db,
        project.workspace_id,
        assignee_ids=changes.get("assignee_ids", ()),
        label_ids=changes.get("label_ids", ()),
    )

    before = {key: getattr(task, key) for key in changes}
    for key, value in changes.items():
        setattr(task, key, value)

    added = [user_id for user_id in changes.get("assignee_ids", []) if user_id not in before.get("assignee_ids", [])]
    status_changed = "status" in changes and before["status"] != changes["status"]
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=actor_id,
        entity_type=EntityType.TASK,
        entity_id=task.task_id,
        action=ActivityAction.STATUS_CHANGED if status_changed else ActivityAction.UPDATED,
        changes=diff_changes(before, changes),
    )
    await db.commit()
    await db.refresh(task)
    return task, added


async def delete_task(db: AsyncSession, project: Project, task: Task, actor_id: str) -> CascadeResult:
    """Soft-delete the task with its comments and attachments.

    The ticket number stays reserved.
    """
    result = await cascade_task_delete(db, task)
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=actor_id,
        entity_type=EntityType.TASK,
        entity_id=task.task_id,
        action=ActivityAction.DELETED,
        description=f"Deleted task {format_ticket_id(project.key, task.ticket_number)}",
    )
    await db.commit()
    logger.info(
        "Task deleted: {} ({}, cascaded={})",
        task.task_id,
        format_ticket_id(project.key, task.ticket_number),
        result.counts,
    )
    return result
