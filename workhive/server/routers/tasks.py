"""Task endpoints (RPC-style).  Tasks are addressed by ticket number."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.db.tables import Project, Task, User
from workhive.server.deps import DbSession, NotifierDep, Settings
from workhive.server.gate import WorkspaceContext, require
from workhive.server.managers import tasks as manager
from workhive.server.managers.identifiers import format_ticket_id
from workhive.server.managers.users import find_user_by_id
from workhive.server.models.api import TaskCreate, TaskResponse, TaskUpdate
from workhive.server.models.enums import TaskStatus
from workhive.server.notify import Notifier, deliver, task_assigned
from workhive.server.policy import Action
from workhive.server.routers.scope import ProjectDep, TaskDep

router = APIRouter(prefix="/workspaces/{slug}/projects/{key}/tasks", tags=["tasks"])

_TASK_FIELDS = tuple(name for name in TaskResponse.model_fields if name != "ticket_id")


def task_response(task: Task, project: Project) -> TaskResponse:
    return TaskResponse(
        ticket_id=format_ticket_id(project.key, task.ticket_number),
        **{name: getattr(task, name) for name in _TASK_FIELDS},
    )


async def _notify_assignees(
    db: AsyncSession,
    background: BackgroundTasks,
    notifier: Notifier,
    *,
    user_ids: Iterable[str],
    task: Task,
    project: Project,
    assigner: User,
) -> None:
    ticket_id = format_ticket_id(project.key, task.ticket_number)
    for user_id in user_ids:
        if user_id == assigner.user_id:
            continue
        user = await find_user_by_id(db, user_id)
        if user is not None:
            background.add_task(deliver, notifier, task_assigned(user, ticket_id, task.title, assigner))


@router.post("/create", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    ctx: Annotated[WorkspaceContext, require(Action.CREATE_TASK)],
    body: TaskCreate,
    project: ProjectDep,
    db: DbSession,
    settings: Settings,
    notifier: NotifierDep,
    background: BackgroundTasks,
) -> TaskResponse:
    """Create a task with the project's next ticket number (any role but viewer)."""
    task = await manager.create_task(
        db, project, ctx.user.user_id, body, retry_attempts=settings.write_retry_attempts
    )
    await _notify_assignees(
        db, background, notifier, user_ids=task.assignee_ids, task=task, project=project, assigner=ctx.user
    )
    return task_response(task, project)


@router.get("/list", response_model=list[TaskResponse])
async def list_tasks(
    project: ProjectDep,
    db: DbSession,
    task_status: TaskStatus | None = Query(None, alias="status", description="Filter by status."),
    assignee_id: str | None = Query(None, description="Only tasks assigned to this user."),
) -> list[TaskResponse]:
    tasks = await manager.list_tasks(db, project.project_id, status=task_status, assignee_id=assignee_id)
    return [task_response(task, project) for task in tasks]


@router.get("/{number}/get", response_model=TaskResponse)
async def get_task(project: ProjectDep, task: TaskDep) -> TaskResponse:
    return task_response(task, project)


@router.post("/{number}/update", response_model=TaskResponse)
async def update_task(
    ctx: Annotated[WorkspaceContext, require(Action.UPDATE_TASK)],
    body: TaskUpdate,
    project: ProjectDep,
    task: TaskDep,
    db: DbSession,
    notifier: NotifierDep,
    background: BackgroundTasks,
) -> TaskResponse:
    task, added = await manager.update_task(db, project, task, body, ctx.user.user_id)
    await _notify_assignees(db, background, notifier, user_ids=added, task=task, project=project, assigner=ctx.user)
    return task_response(task, project)


@router.post("/{number}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    ctx: Annotated[WorkspaceContext, require(Action.DELETE_TASK)],
    project: ProjectDep,
    task: TaskDep,
    db: DbSession,
) -> None:
    """Soft-delete a task with its comments and attachments (owner / admin)."""
    await manager.delete_task(db, project, task, ctx.user.user_id)
