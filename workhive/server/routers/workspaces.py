"""Workspace endpoints (RPC-style).

All write operations use POST; reads use GET.  Workspaces are addressed by
slug.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Query, status

from workhive.server.db.tables import Workspace, WorkspaceMember
from workhive.server.deps import DbSession, NotifierDep, Settings
from workhive.server.gate import CurrentUser, SuperAdmin, WorkspaceContext, WorkspaceCtx, require
from workhive.server.managers import workspaces as manager
from workhive.server.models.api import WorkspaceCreate, WorkspaceResponse, WorkspaceUpdate
from workhive.server.notify import deliver, workspace_created
from workhive.server.policy import Action

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def workspace_response(workspace: Workspace, membership: WorkspaceMember | None = None) -> WorkspaceResponse:
    response = WorkspaceResponse.model_validate(workspace)
    if membership is None:
        return response
    return response.model_copy(update={"role": membership.role, "joined_at": membership.joined_at})


@router.post("/create", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    body: WorkspaceCreate,
    db: DbSession,
    settings: Settings,
    user: CurrentUser,
    notifier: NotifierDep,
    background: BackgroundTasks,
) -> WorkspaceResponse:
    """Create a workspace; the caller becomes its owner."""
    workspace, membership = await manager.create_workspace(
        db,
        body,
        user,
        max_attempts=settings.identifier_max_attempts,
        retry_attempts=settings.write_retry_attempts,
    )
    background.add_task(deliver, notifier, workspace_created(user, workspace))
    return workspace_response(workspace, membership)


@router.get("/list", response_model=list[WorkspaceResponse])
async def list_all_workspaces(
    db: DbSession,
    _admin: SuperAdmin,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[WorkspaceResponse]:
    """List every workspace on the platform (super admin only)."""
    workspaces = await manager.list_all_workspaces(db, limit=limit, offset=offset)
    return [workspace_response(workspace) for workspace in workspaces]


@router.get("/mine", response_model=list[WorkspaceResponse])
async def list_my_workspaces(db: DbSession, user: CurrentUser) -> list[WorkspaceResponse]:
    """Workspaces the caller belongs to, with the caller's role."""
    rows = await manager.list_user_workspaces(db, user.user_id)
    return [workspace_response(workspace, membership) for workspace, membership in rows]


@router.get("/{slug}/get", response_model=WorkspaceResponse)
async def get_workspace(ctx: WorkspaceCtx) -> WorkspaceResponse:
    return workspace_response(ctx.workspace, ctx.membership)


@router.post("/{slug}/update", response_model=WorkspaceResponse)
async def update_workspace(
    body: WorkspaceUpdate,
    db: DbSession,
    ctx: Annotated[WorkspaceContext, require(Action.UPDATE_WORKSPACE)],
) -> WorkspaceResponse:
    """Partially update a workspace (owner / admin)."""
    workspace = await manager.update_workspace(db, ctx.workspace, body, ctx.user.user_id)
    return workspace_response(workspace, ctx.membership)


@router.post("/{slug}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(
    db: DbSession,
    ctx: Annotated[WorkspaceContext, require(Action.DELETE_WORKSPACE)],
) -> None:
    """Soft-delete a workspace and everything in it (owner / admin)."""
    await manager.delete_workspace(db, ctx.workspace, ctx.user.user_id)
