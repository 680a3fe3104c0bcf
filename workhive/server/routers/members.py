"""Workspace membership endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, status

from workhive.server.db.tables import User, WorkspaceMember
from workhive.server.deps import DbSession, NotifierDep
from workhive.server.gate import WorkspaceCtx
from workhive.server.managers import members as manager
from workhive.server.models.api import MemberInvite, MemberResponse, MemberRoleUpdate, UserSummary
from workhive.server.notify import deliver, workspace_invitation

router = APIRouter(prefix="/workspaces/{slug}/members", tags=["members"])


def member_response(member: WorkspaceMember, user: User) -> MemberResponse:
    return MemberResponse(
        member_id=member.member_id,
        workspace_id=member.workspace_id,
        user=UserSummary.model_validate(user),
        role=member.role,
        invited_by=member.invited_by,
        joined_at=member.joined_at,
    )


@router.get("/list", response_model=list[MemberResponse])
async def list_members(ctx: WorkspaceCtx, db: DbSession) -> list[MemberResponse]:
    rows = await manager.list_members(db, ctx.workspace.workspace_id)
    return [member_response(member, user) for member, user in rows]


@router.post("/invite", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    body: MemberInvite,
    ctx: WorkspaceCtx,
    db: DbSession,
    notifier: NotifierDep,
    background: BackgroundTasks,
) -> MemberResponse:
    """Add a registered user to the workspace (owner / admin)."""
    member, user = await manager.invite_member(db, ctx.workspace, ctx.membership, email=body.email, role=body.role)
    background.add_task(deliver, notifier, workspace_invitation(user, ctx.workspace, member.role, ctx.user))
    return member_response(member, user)


@router.post("/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_workspace(ctx: WorkspaceCtx, db: DbSession) -> None:
    """Leave the workspace.  The owner cannot leave."""
    await manager.leave_workspace(db, ctx.workspace, ctx.membership)


@router.post("/{member_id}/update", response_model=MemberResponse)
async def update_member_role(
    member_id: str,
    body: MemberRoleUpdate,
    ctx: WorkspaceCtx,
    db: DbSession,
) -> MemberResponse:
    member = await manager.update_member_role(db, ctx.workspace, ctx.membership, member_id, body.role)
    user = await db.get(User, member.user_id)
    return member_response(member, user)


@router.post("/{member_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(member_id: str, ctx: WorkspaceCtx, db: DbSession) -> None:
    await manager.remove_member(db, ctx.workspace, ctx.membership, member_id)
