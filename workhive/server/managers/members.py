"""Membership ledger: invite, list, change role, remove, leave.

Every mutation is checked by ``policy.check_member_change`` before touching
the database.  Duplicate live memberships are prevented by the
``uq_workspace_members_active`` index; the pre-check only gives a friendlier
error in the common case.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from workhive.server.db.tables import User, Workspace, WorkspaceMember
from workhive.server.errors import ConflictError, NotFoundError
from workhive.server.managers.identifiers import violated_constraint
from workhive.server.managers.users import find_user_by_email
from workhive.server.models.enums import WorkspaceRole
from workhive.server.policy import Action, check_member_change

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

ACTIVE_MEMBERSHIP_CONSTRAINT = "uq_workspace_members_active"


async def get_membership(db: AsyncSession, workspace_id: str, user_id: str) -> WorkspaceMember | None:
    """The live membership of *user_id* in *workspace_id*, if any."""
    result = await db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def get_member(db: AsyncSession, workspace_id: str, member_id: str) -> WorkspaceMember:
    """Get a live membership by id.  Raises ``NotFoundError`` if missing."""
    member = await db.get(WorkspaceMember, member_id)
    if member is None or member.workspace_id != workspace_id or member.deleted_at is not None:
        msg = "Member not found"
        raise NotFoundError(msg)
    return member


async def list_members(db: AsyncSession, workspace_id: str) -> list[tuple[WorkspaceMember, User]]:
    """Live members with their user rows, in join order."""
    stmt = (
        select(WorkspaceMember, User)
        .join(User, User.user_id == WorkspaceMember.user_id)
        .where(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.deleted_at.is_(None))
        .order_by(WorkspaceMember.joined_at.asc())
    )
    result = await db.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def is_member(db: AsyncSession, workspace_id: str, user_id: str) -> bool:
    return await get_membership(db, workspace_id, user_id) is not None


async def invite_member(
    db: AsyncSession,
    workspace: Workspace,
    actor: WorkspaceMember,
    *,
    email: str,
    role: WorkspaceRole,
) -> tuple[WorkspaceMember, User]:
    """Add the user registered under *email* to *workspace* with *role*.

    Raises ``BadRequestError`` for role=owner, ``ForbiddenError`` when an
    admin tries to invite an admin, ``NotFoundError`` for an unknown or
    inactive user, and ``ConflictError`` if the user is already a member.
    """
    check_member_change(Action.INVITE_MEMBER, actor_role=WorkspaceRole(actor.role), new_role=role)

    user = await find_user_by_email(db, email)
    if user is None or not user.is_active:
        msg = "User with this email does not exist"
        raise NotFoundError(msg)

    if await is_member(db, workspace.workspace_id, user.user_id):
        msg = "User is already a member of this workspace"
        raise ConflictError(msg)

    membership = WorkspaceMember(
        member_id=uuid.uuid4().hex,
        workspace_id=workspace.workspace_id,
        user_id=user.user_id,
        role=role,
        invited_by=actor.user_id,
    )
    try:
        async with db.begin_nested():
            db.add(membership)
    except IntegrityError as exc:
        if violated_constraint(exc) not in (None, ACTIVE_MEMBERSHIP_CONSTRAINT):
            raise
        msg = "User is already a member of this workspace"
        raise ConflictError(msg) from exc

    await db.commit()
    await db.refresh(membership)
    logger.info(
        "Member invited: {} -> workspace {} as {} (by {})",
        user.user_id,
        workspace.workspace_id,
        role,
        actor.user_id,
    )
    return membership, user


async def update_member_role(
    db: AsyncSession,
    workspace: Workspace,
    actor: WorkspaceMember,
    member_id: str,
    new_role: WorkspaceRole,
) -> WorkspaceMember:
    target = await get_member(db, workspace.workspace_id, member_id)
    check_member_change(
        Action.CHANGE_MEMBER_ROLE,
        actor_role=WorkspaceRole(actor.role),
        is_self=target.user_id == actor.user_id,
        target_role=WorkspaceRole(target.role),
        new_role=new_role,
    )

    previous = target.role
    target.role = new_role
    await db.commit()
    await db.refresh(target)
    logger.info(
        "Member role changed: {} in workspace {} {} -> {} (by {})",
        target.user_id,
        workspace.workspace_id,
        previous,
        new_role,
        actor.user_id,
    )
    return target


async def remove_member(db: AsyncSession, workspace: Workspace, actor: WorkspaceMember, member_id: str) -> None:
    """Soft-delete another member's membership (admin path)."""
    target = await get_member(db, workspace.workspace_id, member_id)
    check_member_change(
        Action.REMOVE_MEMBER,
        actor_role=WorkspaceRole(actor.role),
        is_self=target.user_id == actor.user_id,
        target_role=WorkspaceRole(target.role),
    )
    target.deleted_at = datetime.now(UTC)
    await db.commit()
    logger.info("Member removed: {} from workspace {} (by {})", target.user_id, workspace.workspace_id, actor.user_id)


async def leave_workspace(db: AsyncSession, workspace: Workspace, actor: WorkspaceMember) -> None:
    """Soft-delete the caller's own membership.  The owner cannot leave."""
    check_member_change(Action.LEAVE_WORKSPACE, actor_role=WorkspaceRole(actor.role), is_self=True)
    actor.deleted_at = datetime.now(UTC)
    await db.commit()
    logger.info("Member left: {} from workspace {}", actor.user_id, workspace.workspace_id)
