"""Authorization gate: authenticate -> resolve membership -> authorize.

Each step is a FastAPI dependency depending on the previous one, so the checks
always run in that order and short-circuit on the first failure.  The gate
only reads; it never mutates state.

Usage in route handlers::

    @router.post("/{slug}/projects/create")
    async def create_project(ctx: Annotated[WorkspaceContext, require(Action.CREATE_PROJECT)], ...):
        ...

    @router.get("/{slug}/get")
    async def get_workspace(ctx: WorkspaceCtx) -> WorkspaceResponse:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.auth import decode_access_token
from workhive.server.db.tables import User, Workspace, WorkspaceMember
from workhive.server.deps import DbSession, Settings
from workhive.server.errors import ForbiddenError, UnauthenticatedError
from workhive.server.managers.members import get_membership
from workhive.server.managers.users import find_user_by_id
from workhive.server.managers.workspaces import get_workspace_by_slug
from workhive.server.models.enums import WorkspaceRole
from workhive.server.policy import Action, PolicyRequest, authorize
from workhive.server.settings import HiveSettings

_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


async def authenticate(db: AsyncSession, token: str | None, settings: HiveSettings) -> User:
    """Resolve the caller from a bearer token.

    Raises ``UnauthenticatedError`` for a missing or invalid token and for
    unknown, deleted or deactivated users.
    """
    if not token:
        msg = "Authentication required"
        raise UnauthenticatedError(msg)
    user_id = decode_access_token(token, settings)
    user = await find_user_by_id(db, user_id)
    if user is None:
        msg = "User not found"
        raise UnauthenticatedError(msg)
    if not user.is_active:
        msg = "Account is deactivated"
        raise UnauthenticatedError(msg)
    return user


async def resolve_membership(db: AsyncSession, slug: str, user: User) -> tuple[Workspace, WorkspaceMember]:
    """Find the live workspace and the caller's live membership in it.

    A missing workspace is ``NotFoundError``; an existing workspace the caller
    does not belong to is ``ForbiddenError``.
    """
    workspace = await get_workspace_by_slug(db, slug)
    membership = await get_membership(db, workspace.workspace_id, user.user_id)
    if membership is None:
        msg = "Access denied. You are not a member of this workspace"
        raise ForbiddenError(msg)
    return workspace, membership


@dataclass
class WorkspaceContext:
    """What the gate resolved for one request, handed to the route."""

    user: User
    workspace: Workspace
    membership: WorkspaceMember

    @property
    def role(self) -> WorkspaceRole:
        return WorkspaceRole(self.membership.role)

    @property
    def allow_member_project_creation(self) -> bool:
        return bool((self.workspace.settings or {}).get("allow_member_project_creation", False))

    def is_author(self, author_id: str | None) -> bool:
        return author_id is not None and author_id == self.user.user_id

    def authorize(self, action: Action, *, author_id: str | None = None) -> None:
        """Raise ``ForbiddenError`` unless the caller may perform *action*.

        Pass *author_id* for actions the resource's author may perform
        regardless of role (comments, attachments, project owner).
        """
        authorize(
            PolicyRequest(
                action=action,
                role=self.role,
                is_author=self.is_author(author_id),
                allow_member_project_creation=self.allow_member_project_creation,
            )
        )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


async def get_current_user(
    db: DbSession,
    settings: Settings,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> User:
    return await authenticate(db, credentials.credentials if credentials else None, settings)


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_workspace_context(slug: str, db: DbSession, user: CurrentUser) -> WorkspaceContext:
    workspace, membership = await resolve_membership(db, slug, user)
    return WorkspaceContext(user=user, workspace=workspace, membership=membership)


WorkspaceCtx = Annotated[WorkspaceContext, Depends(get_workspace_context)]


def require(action: Action) -> Any:
    """Dependency that resolves the workspace context and checks *action* by role alone.

    Author-dependent actions are checked in the handler via
    :meth:`WorkspaceContext.authorize` once the resource is loaded.
    """

    async def dependency(ctx: WorkspaceCtx) -> WorkspaceContext:
        ctx.authorize(action)
        return ctx

    return Depends(dependency)


async def require_super_admin(user: CurrentUser) -> User:
    if not user.is_super_admin:
        msg = "Access denied. Super admin privileges required"
        raise ForbiddenError(msg)
    return user


SuperAdmin = Annotated[User, Depends(require_super_admin)]
