"""Workspace authorization policy.

Single source of truth for "may this role do this action".  Every route goes
through :func:`authorize` (via the gate), and every membership mutation also
goes through :func:`check_member_change`, so the role hierarchy is never
re-derived inside a handler.

Pure logic -- no FastAPI, no database access.

Rules in short:

- Role grants come from ``ROLE_GRANTS``.
- Some actions are also granted to the author / owner of the resource
  (``AUTHOR_GRANTS``); editing a comment is author-only.
- A MEMBER may create projects when the workspace enables
  ``allow_member_project_creation``.
- Membership guards: nobody changes their own role, nobody removes
  themselves through the admin path, the OWNER role is never assigned,
  changed or removed, and only the OWNER may act on an ADMIN.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from workhive.server.errors import BadRequestError, ForbiddenError
from workhive.server.models.enums import WorkspaceRole

OWNER = WorkspaceRole.OWNER
ADMIN = WorkspaceRole.ADMIN
MEMBER = WorkspaceRole.MEMBER
VIEWER = WorkspaceRole.VIEWER

ROLE_RANK: dict[WorkspaceRole, int] = {OWNER: 3, ADMIN: 2, MEMBER: 1, VIEWER: 0}


class Action(StrEnum):
    VIEW_WORKSPACE = "workspace:view"
    UPDATE_WORKSPACE = "workspace:update"
    DELETE_WORKSPACE = "workspace:delete"

    INVITE_MEMBER = "member:invite"
    CHANGE_MEMBER_ROLE = "member:change_role"
    REMOVE_MEMBER = "member:remove"
    LEAVE_WORKSPACE = "member:leave"

    CREATE_LABEL = "label:create"

    CREATE_PROJECT = "project:create"
    UPDATE_PROJECT = "project:update"
    DELETE_PROJECT = "project:delete"

    CREATE_TASK = "task:create"
    UPDATE_TASK = "task:update"
    DELETE_TASK = "task:delete"

    CREATE_COMMENT = "comment:create"
    UPDATE_COMMENT = "comment:update"
    DELETE_COMMENT = "comment:delete"

    UPLOAD_ATTACHMENT = "attachment:upload"
    DELETE_ATTACHMENT = "attachment:delete"


_EVERYONE = frozenset(WorkspaceRole)
_ADMINS = frozenset({OWNER, ADMIN})
_WRITERS = frozenset({OWNER, ADMIN, MEMBER})

ROLE_GRANTS: dict[Action, frozenset[WorkspaceRole]] = {
    Action.VIEW_WORKSPACE: _EVERYONE,
    Action.UPDATE_WORKSPACE: _ADMINS,
    Action.DELETE_WORKSPACE: _ADMINS,
    Action.INVITE_MEMBER: _ADMINS,
    Action.CHANGE_MEMBER_ROLE: _ADMINS,
    Action.REMOVE_MEMBER: _ADMINS,
    Action.LEAVE_WORKSPACE: _EVERYONE,
    Action.CREATE_LABEL: _ADMINS,
    Action.CREATE_PROJECT: _ADMINS,
    Action.UPDATE_PROJECT: _ADMINS,
    Action.DELETE_PROJECT: _ADMINS,
    Action.CREATE_TASK: _WRITERS,
    Action.UPDATE_TASK: _WRITERS,
    Action.DELETE_TASK: _ADMINS,
    Action.CREATE_COMMENT: _EVERYONE,
    Action.UPDATE_COMMENT: frozenset(),
    Action.DELETE_COMMENT: _ADMINS,
    Action.UPLOAD_ATTACHMENT: _WRITERS,
    Action.DELETE_ATTACHMENT: _ADMINS,
}

# Actions the resource's author (or project owner) may perform whatever their role.
AUTHOR_GRANTS: frozenset[Action] = frozenset({
    Action.UPDATE_PROJECT,
    Action.UPDATE_COMMENT,
    Action.DELETE_COMMENT,
    Action.DELETE_ATTACHMENT,
})

_DENIAL_MESSAGES: dict[Action, str] = {
    Action.CREATE_PROJECT: "Access denied. You do not have permission to create projects in this workspace",
    Action.CREATE_TASK: "Access denied. Viewers cannot create tasks (read-only access)",
    Action.UPDATE_TASK: "Access denied. Viewers cannot modify tasks (read-only access)",
    Action.UPLOAD_ATTACHMENT: "Access denied. Viewers cannot upload attachments (read-only access)",
    Action.UPDATE_COMMENT: "Access denied. You can only edit your own comments",
    Action.DELETE_COMMENT: "Access denied. You can only delete your own comments or be an admin/owner",
    Action.DELETE_ATTACHMENT: "Access denied. You can only delete your own attachments or be an admin/owner",
}


@dataclass(frozen=True)
class PolicyRequest:
    """Everything the policy needs to decide one action."""

    action: Action
    role: WorkspaceRole
    is_author: bool = False
    allow_member_project_creation: bool = False


def is_allowed(request: PolicyRequest) -> bool:
    if request.role in ROLE_GRANTS[request.action]:
        return True
    if request.is_author and request.action in AUTHOR_GRANTS:
        return True
    return (
        request.action is Action.CREATE_PROJECT
        and request.role == MEMBER
        and request.allow_member_project_creation
    )


def authorize(request: PolicyRequest) -> None:
    """Raise ``ForbiddenError`` unless *request* is allowed."""
    if is_allowed(request):
        return
    message = _DENIAL_MESSAGES.get(request.action)
    if message is None:
        roles = sorted(ROLE_GRANTS[request.action], key=ROLE_RANK.__getitem__, reverse=True)
        message = f"Access denied. This action requires one of these roles: {', '.join(roles)}"
    raise ForbiddenError(message)


# ---------------------------------------------------------------------------
# Membership guards
# ---------------------------------------------------------------------------


def check_member_change(
    action: Action,
    *,
    actor_role: WorkspaceRole,
    is_self: bool = False,
    target_role: WorkspaceRole | None = None,
    new_role: WorkspaceRole | None = None,
) -> None:
    """Validate a membership mutation after the role gate has passed.

    *target_role* is the current role of the membership being acted on
    (``None`` for an invite); *new_role* the role being granted (``None`` for
    removal and leave).  Raises ``BadRequestError`` for rule violations that no
    role could perform and ``ForbiddenError`` where a higher role could.
    """
    if action is Action.LEAVE_WORKSPACE:
        if actor_role == OWNER:
            msg = "Workspace owner cannot leave. Delete the workspace or transfer ownership first"
            raise BadRequestError(msg)
        return

    if action not in (Action.INVITE_MEMBER, Action.CHANGE_MEMBER_ROLE, Action.REMOVE_MEMBER):
        msg = f"{action} is not a membership action"
        raise ValueError(msg)

    authorize(PolicyRequest(action=action, role=actor_role))

    if is_self:
        if action is Action.REMOVE_MEMBER:
            msg = "You cannot remove yourself. Use leave instead"
        else:
            msg = "You cannot change your own role"
        raise BadRequestError(msg)

    if target_role == OWNER:
        verb = "remove" if action is Action.REMOVE_MEMBER else "change the role of"
        msg = f"Cannot {verb} the workspace owner"
        raise BadRequestError(msg)

    if new_role == OWNER:
        msg = "The owner role cannot be assigned"
        raise BadRequestError(msg)

    if actor_role != OWNER and ADMIN in (target_role, new_role):
        msg = "Access denied. Only the workspace owner can manage admins"
        raise ForbiddenError(msg)
