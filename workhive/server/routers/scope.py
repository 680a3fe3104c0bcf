"""Path resolution shared by the nested routers.

Each dependency builds on the gate's workspace context, so a project is only
ever looked up inside the caller's workspace, a task inside that project, and
a comment inside that task.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from workhive.server.db.tables import Comment, Project, Task
from workhive.server.deps import DbSession
from workhive.server.gate import WorkspaceCtx
from workhive.server.managers.comments import get_comment
from workhive.server.managers.projects import get_project_by_key
from workhive.server.managers.tasks import get_task_by_number


async def resolve_project(key: str, ctx: WorkspaceCtx, db: DbSession) -> Project:
    return await get_project_by_key(db, ctx.workspace.workspace_id, key)


ProjectDep = Annotated[Project, Depends(resolve_project)]


async def resolve_task(number: int, project: ProjectDep, db: DbSession) -> Task:
    return await get_task_by_number(db, project.project_id, number)


TaskDep = Annotated[Task, Depends(resolve_task)]


async def resolve_comment(comment_id: str, task: TaskDep, db: DbSession) -> Comment:
    return await get_comment(db, task.task_id, comment_id)


CommentDep = Annotated[Comment, Depends(resolve_comment)]
