"""Label endpoints (RPC-style)."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, status

from workhive.server.db.tables import Label
from workhive.server.deps import DbSession
from workhive.server.gate import WorkspaceContext, WorkspaceCtx, require
from workhive.server.managers import labels as manager
from workhive.server.models.api import LabelCreate, LabelResponse
from workhive.server.policy import Action

router = APIRouter(prefix="/workspaces/{slug}/labels", tags=["labels"])


@router.get("/list", response_model=list[LabelResponse])
async def list_labels(ctx: WorkspaceCtx, db: DbSession) -> list[Label]:
    return await manager.list_labels(db, ctx.workspace.workspace_id)


@router.post("/create", response_model=LabelResponse, status_code=status.HTTP_201_CREATED)
async def create_label(
    body: LabelCreate,
    db: DbSession,
    ctx: Annotated[WorkspaceContext, require(Action.CREATE_LABEL)],
) -> Label:
    return await manager.create_label(db, ctx.workspace.workspace_id, body)
