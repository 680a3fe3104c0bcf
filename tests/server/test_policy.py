"""Unit tests for the role/permission table and membership guards."""

from __future__ import annotations

import pytest

from workhive.server.errors import BadRequestError, ForbiddenError
from workhive.server.models.enums import WorkspaceRole
from workhive.server.policy import ROLE_GRANTS, Action, PolicyRequest, authorize, check_member_change, is_allowed

OWNER = WorkspaceRole.OWNER
ADMIN = WorkspaceRole.ADMIN
MEMBER = WorkspaceRole.MEMBER
VIEWER = WorkspaceRole.VIEWER


def test_every_action_has_a_grant() -> None:
    assert set(ROLE_GRANTS) == set(Action)


@pytest.mark.parametrize(
    ("role", "allowed"),
    [(OWNER, True), (ADMIN, True), (MEMBER, True), (VIEWER, False)],
)
def test_task_creation_excludes_viewers(role: WorkspaceRole, allowed: bool) -> None:
    assert is_allowed(PolicyRequest(action=Action.CREATE_TASK, role=role)) is allowed


def test_viewer_denial_message() -> None:
    with pytest.raises(ForbiddenError, match="Viewers cannot create tasks"):
        authorize(PolicyRequest(action=Action.CREATE_TASK, role=VIEWER))


def test_project_creation_depends_on_workspace_setting() -> None:
    assert is_allowed(PolicyRequest(action=Action.CREATE_PROJECT, role=ADMIN))
    assert not is_allowed(PolicyRequest(action=Action.CREATE_PROJECT, role=MEMBER))
    assert is_allowed(PolicyRequest(action=Action.CREATE_PROJECT, role=MEMBER, allow_member_project_creation=True))
    # The setting never extends to viewers.
    assert not is_allowed(
        PolicyRequest(action=Action.CREATE_PROJECT, role=VIEWER, allow_member_project_creation=True)
    )


def test_admin_action_message_names_roles() -> None:
    with pytest.raises(ForbiddenError, match="requires one of these roles: owner, admin"):
        authorize(PolicyRequest(action=Action.DELETE_WORKSPACE, role=MEMBER))


@pytest.mark.parametrize("action", [Action.DELETE_COMMENT, Action.DELETE_ATTACHMENT])
def test_author_or_admin_may_delete(action: Action) -> None:
    assert is_allowed(PolicyRequest(action=action, role=VIEWER, is_author=True))
    assert is_allowed(PolicyRequest(action=action, role=ADMIN))
    assert not is_allowed(PolicyRequest(action=action, role=MEMBER))


def test_only_author_edits_comment() -> None:
    assert is_allowed(PolicyRequest(action=Action.UPDATE_COMMENT, role=MEMBER, is_author=True))
    assert not is_allowed(PolicyRequest(action=Action.UPDATE_COMMENT, role=OWNER))


def test_authorship_does_not_grant_unrelated_actions() -> None:
    assert not is_allowed(PolicyRequest(action=Action.DELETE_PROJECT, role=MEMBER, is_author=True))


# ---------------------------------------------------------------------------
# Membership guards
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("actor", [OWNER, ADMIN])
def test_owner_role_never_granted_by_invite(actor: WorkspaceRole) -> None:
    with pytest.raises((BadRequestError, ForbiddenError)):
        check_member_change(Action.INVITE_MEMBER, actor_role=actor, new_role=OWNER)


@pytest.mark.parametrize("actor", [OWNER, ADMIN])
@pytest.mark.parametrize("target", [ADMIN, MEMBER, VIEWER])
def test_owner_role_never_granted_by_role_update(actor: WorkspaceRole, target: WorkspaceRole) -> None:
    with pytest.raises((BadRequestError, ForbiddenError)):
        check_member_change(Action.CHANGE_MEMBER_ROLE, actor_role=actor, target_role=target, new_role=OWNER)


def test_owner_cannot_be_demoted_or_removed() -> None:
    with pytest.raises(BadRequestError, match="workspace owner"):
        check_member_change(Action.CHANGE_MEMBER_ROLE, actor_role=ADMIN, target_role=OWNER, new_role=MEMBER)
    with pytest.raises(BadRequestError, match="workspace owner"):
        check_member_change(Action.REMOVE_MEMBER, actor_role=ADMIN, target_role=OWNER)


def test_self_guards() -> None:
    with pytest.raises(BadRequestError, match="your own role"):
        check_member_change(
            Action.CHANGE_MEMBER_ROLE, actor_role=ADMIN, is_self=True, target_role=ADMIN, new_role=MEMBER
        )
    with pytest.raises(BadRequestError, match="Use leave instead"):
        check_member_change(Action.REMOVE_MEMBER, actor_role=ADMIN, is_self=True, target_role=ADMIN)


def test_admin_cannot_act_on_admin() -> None:
    with pytest.raises(ForbiddenError, match="Only the workspace owner can manage admins"):
        check_member_change(Action.CHANGE_MEMBER_ROLE, actor_role=ADMIN, target_role=ADMIN, new_role=MEMBER)
    with pytest.raises(ForbiddenError):
        check_member_change(Action.REMOVE_MEMBER, actor_role=ADMIN, target_role=ADMIN)
    with pytest.raises(ForbiddenError):
        check_member_change(Action.INVITE_MEMBER, actor_role=ADMIN, new_role=ADMIN)


def test_owner_may_act_on_admin() -> None:
    check_member_change(Action.CHANGE_MEMBER_ROLE, actor_role=OWNER, target_role=ADMIN, new_role=MEMBER)
    check_member_change(Action.REMOVE_MEMBER, actor_role=OWNER, target_role=ADMIN)
    check_member_change(Action.INVITE_MEMBER, actor_role=OWNER, new_role=ADMIN)


def test_admin_may_manage_members_and_viewers() -> None:
    check_member_change(Action.CHANGE_MEMBER_ROLE, actor_role=ADMIN, target_role=MEMBER, new_role=VIEWER)
    check_member_change(Action.REMOVE_MEMBER, actor_role=ADMIN, target_role=VIEWER)


def test_members_cannot_manage_memberships() -> None:
    with pytest.raises(ForbiddenError):
        check_member_change(Action.INVITE_MEMBER, actor_role=MEMBER, new_role=VIEWER)


def test_owner_cannot_leave() -> None:
    with pytest.raises(BadRequestError, match="owner cannot leave"):
        check_member_change(Action.LEAVE_WORKSPACE, actor_role=OWNER, is_self=True)
    check_member_change(Action.LEAVE_WORKSPACE, actor_role=VIEWER, is_self=True)
