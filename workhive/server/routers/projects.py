"""Project endpoints (RPC-style).  Projects are addressed by key."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from workhive.server.db.tables import Project
from workhive.server.deps import DbSession, Settings
from workhive.server.gate import WorkspaceContext, WorkspaceCtx, require
from workhive.server.managers import projects as manager
from workhive.server.models.api import ProjectCreate, ProjectResponse, ProjectUpdate
from workhive.server.models.enums import ProjectStatus
from workhive.server.policy import Action
from workhive.server.routers.scope import ProjectDep

router = APIRouter(prefix="/workspaces/{slug}/projects", tags=["projects"])


@router.post("/create", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    db: DbSession,
    settings: Settings,
    ctx: Annotated[WorkspaceContext, require(Action.CREATE_PROJECT)],
) -> Project:
    """Create a project.  The key is derived from the name unless given."""
    return await manager.create_project(
        db,
        ctx.workspace,
        ctx.user.user_id,
        body,
        max_attempts=settings.identifier_max_attempts,
        retry_attempts=settings.write_retry_attempts,
    )


@router.get("/list", response_model=list[ProjectResponse])
async def list_projects(
    ctx: WorkspaceCtx,
    db: DbSession,
    project_status: ProjectStatus | None = Query(None, alias="status", description="Filter by status."),
) -> list[Project]:
    return await manager.list_projects(db, ctx.workspace.workspace_id, status=project_status)


@router.get("/{key}/get", response_model=ProjectResponse)
async def get_project(project: ProjectDep) -> Project:
    return project


@router.post("/{key}/update", response_model=ProjectResponse)
async def update_project(body: ProjectUpdate, project: ProjectDep, ctx: WorkspaceCtx, db: DbSession) -> Project:
    """Partially update a project (owner / admin, or the project owner)."""
    ctx.authorize(Action.UPDATE_PROJECT, author_id=project.owner_id)
    return await manager.update_project(db, project, body, ctx.user.user_id)


@router.post("/{key}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    ctx: Annotated[WorkspaceContext, require(Action.DELETE_PROJECT)],
    project: ProjectDep,
    db: DbSession,
) -> None:
    """Soft-delete a project with its tasks, comments and attachments."""
    await manager.delete_project(db, project, ctx.user.user_id)
