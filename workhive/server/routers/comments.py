"""Comment endpoints (RPC-style)."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, status

from workhive.server.db.tables import Comment
from workhive.server.deps import DbSession
from workhive.server.gate import WorkspaceContext, WorkspaceCtx, require
from workhive.server.managers import comments as manager
from workhive.server.models.api import CommentCreate, CommentResponse, CommentUpdate
from workhive.server.policy import Action
from workhive.server.routers.scope import CommentDep, ProjectDep, TaskDep

router = APIRouter(prefix="/workspaces/{slug}/projects/{key}/tasks/{number}/comments", tags=["comments"])


@router.post("/create", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    ctx: Annotated[WorkspaceContext, require(Action.CREATE_COMMENT)],
    body: CommentCreate,
    project: ProjectDep,
    task: TaskDep,
    db: DbSession,
) -> Comment:
    return await manager.create_comment(db, project, task, ctx.user.user_id, body.content)


@router.get("/list", response_model=list[CommentResponse])
async def list_comments(task: TaskDep, db: DbSession) -> list[Comment]:
    return await manager.list_comments(db, task.task_id)


@router.post("/{comment_id}/update", response_model=CommentResponse)
async def update_comment(
    ctx: WorkspaceCtx,
    body: CommentUpdate,
    project: ProjectDep,
    comment: CommentDep,
    db: DbSession,
) -> Comment:
    """Edit a comment (author only)."""
    ctx.authorize(Action.UPDATE_COMMENT, author_id=comment.author_id)
    return await manager.update_comment(db, project, comment, body.content, ctx.user.user_id)


@router.post("/{comment_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(ctx: WorkspaceCtx, project: ProjectDep, comment: CommentDep, db: DbSession) -> None:
    """Delete a comment (its author, or owner / admin)."""
    ctx.authorize(Action.DELETE_COMMENT, author_id=comment.author_id)
    await manager.delete_comment(db, project, comment, ctx.user.user_id)
