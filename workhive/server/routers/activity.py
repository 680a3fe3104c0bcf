"""Activity log endpoint (read-only)."""

from __future__ import annotations

from fastapi import APIRouter, Query

from workhive.server.db.tables import ActivityLog
from workhive.server.deps import DbSession
from workhive.server.gate import WorkspaceCtx
from workhive.server.managers.activity import list_activity
from workhive.server.managers.projects import get_project_by_key
from workhive.server.models.api import ActivityResponse

router = APIRouter(prefix="/workspaces/{slug}/activity", tags=["activity"])


@router.get("/list", response_model=list[ActivityResponse])
async def list_workspace_activity(
    ctx: WorkspaceCtx,
    db: DbSession,
    project_key: str | None = Query(None, alias="project", description="Only activity of this project."),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[ActivityLog]:
    """Workspace activity, newest first."""
    project_id = None
    if project_key is not None:
        project = await get_project_by_key(db, ctx.workspace.workspace_id, project_key)
        project_id = project.project_id
    return await list_activity(db, ctx.workspace.workspace_id, project_id=project_id, limit=limit, offset=offset)
