"""HTTP tests for the workspace API (auth gate, roles, nested resources)."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from workhive.server.managers.users import create_user

pytestmark = pytest.mark.integration


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# Authentication and membership
# ---------------------------------------------------------------------------


async def test_missing_token_is_401(client: AsyncClient, team) -> None:
    response = await client.get("/api/workspaces/acme-corp/get")
    assert response.status_code == 401
    assert response.json()["kind"] == "unauthenticated"


async def test_invalid_token_is_401(client: AsyncClient, team) -> None:
    response = await client.get("/api/users/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


async def test_deactivated_user_is_401(client: AsyncClient, db_session, make_user, auth) -> None:
    user = await make_user("gone")
    user.is_active = False
    await db_session.commit()

    response = await client.get("/api/users/me", headers=auth(user))
    assert response.status_code == 401
    assert response.json()["message"] == "Account is deactivated"


async def test_me(client: AsyncClient, team, auth) -> None:
    response = await client.get("/api/users/me", headers=auth(team.member))
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == team.member.email
    assert body["is_super_admin"] is False


async def test_unknown_workspace_is_404(client: AsyncClient, team, auth) -> None:
    response = await client.get("/api/workspaces/nope/get", headers=auth(team.owner))
    assert response.status_code == 404
    assert response.json() == {"success": False, "kind": "not_found", "message": "Workspace not found"}


async def test_non_member_is_403(client: AsyncClient, team, make_user, auth) -> None:
    outsider = await make_user("outsider")
    response = await client.get("/api/workspaces/acme-corp/get", headers=auth(outsider))
    assert response.status_code == 403
    assert response.json()["message"] == "Access denied. You are not a member of this workspace"


async def test_member_sees_own_role(client: AsyncClient, team, auth) -> None:
    response = await client.get("/api/workspaces/acme-corp/get", headers=auth(team.viewer))
    assert response.status_code == 200
    assert response.json()["role"] == "viewer"


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


async def test_create_workspace_over_http(client: AsyncClient, make_user, auth, notifier) -> None:
    user = await make_user("founder")
    headers = auth(user)

    first = await client.post("/api/workspaces/create", json={"name": "My Awesome Workspace"}, headers=headers)
    second = await client.post("/api/workspaces/create", json={"name": "My Awesome Workspace"}, headers=headers)

    assert first.status_code == 201
    assert first.json()["slug"] == "my-awesome-workspace"
    assert first.json()["role"] == "owner"
    assert second.json()["slug"] == "my-awesome-workspace-1"

    mine = await client.get("/api/workspaces/mine", headers=headers)
    assert sorted(ws["slug"] for ws in mine.json()) == ["my-awesome-workspace", "my-awesome-workspace-1"]
    assert [n.recipient for n in notifier.sent] == [user.email, user.email]


async def test_invalid_workspace_input_is_422(client: AsyncClient, make_user, auth) -> None:
    user = await make_user("founder")
    response = await client.post("/api/workspaces/create", json={"name": "ab"}, headers=auth(user))
    assert response.status_code == 422


async def test_list_all_workspaces_requires_super_admin(client: AsyncClient, team, make_user, auth) -> None:
    denied = await client.get("/api/workspaces/list", headers=auth(team.owner))
    assert denied.status_code == 403

    root = await make_user("root", super_admin=True)
    allowed = await client.get("/api/workspaces/list", headers=auth(root))
    assert allowed.status_code == 200
    assert "acme-corp" in [ws["slug"] for ws in allowed.json()]


async def test_update_workspace_roles(client: AsyncClient, team, auth) -> None:
    payload = {"description": "Widgets", "settings": {"allow_member_project_creation": True}}

    denied = await client.post("/api/workspaces/acme-corp/update", json=payload, headers=auth(team.member))
    assert denied.status_code == 403

    response = await client.post("/api/workspaces/acme-corp/update", json=payload, headers=auth(team.admin))
    assert response.status_code == 200
    assert response.json()["settings"] == {"allow_member_project_creation": True}


async def test_delete_workspace(client: AsyncClient, team, auth) -> None:
    denied = await client.post("/api/workspaces/acme-corp/delete", headers=auth(team.member))
    assert denied.status_code == 403

    response = await client.post("/api/workspaces/acme-corp/delete", headers=auth(team.owner))
    assert response.status_code == 204

    gone = await client.get("/api/workspaces/acme-corp/get", headers=auth(team.owner))
    assert gone.status_code == 404


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


async def test_invite_and_list_members(client: AsyncClient, db_session, team, auth, notifier) -> None:
    newcomer = await create_user(db_session, email="new@example.com", first_name="New", last_name="Comer")

    response = await client.post(
        "/api/workspaces/acme-corp/members/invite",
        json={"email": "new@example.com", "role": "member"},
        headers=auth(team.admin),
    )
    assert response.status_code == 201
    assert response.json()["user"]["user_id"] == newcomer.user_id
    assert response.json()["invited_by"] == team.admin.user_id

    duplicate = await client.post(
        "/api/workspaces/acme-corp/members/invite",
        json={"email": "new@example.com", "role": "viewer"},
        headers=auth(team.admin),
    )
    assert duplicate.status_code == 409

    members = await client.get("/api/workspaces/acme-corp/members/list", headers=auth(team.viewer))
    assert len(members.json()) == 5
    assert notifier.sent[-1].recipient == "new@example.com"


async def test_owner_role_over_http_is_400(client: AsyncClient, db_session, team, auth) -> None:
    await create_user(db_session, email="new@example.com", first_name="New", last_name="Comer")
    response = await client.post(
        "/api/workspaces/acme-corp/members/invite",
        json={"email": "new@example.com", "role": "owner"},
        headers=auth(team.owner),
    )
    assert response.status_code == 400


async def test_member_role_changes(client: AsyncClient, team, auth) -> None:
    members = (await client.get("/api/workspaces/acme-corp/members/list", headers=auth(team.owner))).json()
    by_user = {m["user"]["user_id"]: m["member_id"] for m in members}

    admin_member_id = by_user[team.admin.user_id]
    member_member_id = by_user[team.member.user_id]
    self_change = await client.post(
        f"/api/workspaces/acme-corp/members/{admin_member_id}/update",
        json={"role": "viewer"},
        headers=auth(team.admin),
    )
    assert self_change.status_code == 400

    # Only the owner may grant admin.
    promoted = await client.post(
        f"/api/workspaces/acme-corp/members/{member_member_id}/update",
        json={"role": "admin"},
        headers=auth(team.admin),
    )
    assert promoted.status_code == 403

    promoted = await client.post(
        f"/api/workspaces/acme-corp/members/{member_member_id}/update",
        json={"role": "admin"},
        headers=auth(team.owner),
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "admin"


async def test_remove_and_leave(client: AsyncClient, team, auth) -> None:
    members = (await client.get("/api/workspaces/acme-corp/members/list", headers=auth(team.owner))).json()
    viewer_member_id = next(m["member_id"] for m in members if m["user"]["user_id"] == team.viewer.user_id)

    removed = await client.post(
        f"/api/workspaces/acme-corp/members/{viewer_member_id}/delete", headers=auth(team.admin)
    )
    assert removed.status_code == 204
    assert (await client.get("/api/workspaces/acme-corp/get", headers=auth(team.viewer))).status_code == 403

    left = await client.post("/api/workspaces/acme-corp/members/leave", headers=auth(team.member))
    assert left.status_code == 204

    owner_leaves = await client.post("/api/workspaces/acme-corp/members/leave", headers=auth(team.owner))
    assert owner_leaves.status_code == 400


# ---------------------------------------------------------------------------
# Projects and tasks
# ---------------------------------------------------------------------------


async def _create_project(client: AsyncClient, headers: dict[str, str], name: str = "Mobile App Development") -> dict:
    response = await client.post("/api/workspaces/acme-corp/projects/create", json={"name": name}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_project_creation_setting(client: AsyncClient, team, auth) -> None:
    denied = await client.post(
        "/api/workspaces/acme-corp/projects/create", json={"name": "Side"}, headers=auth(team.member)
    )
    assert denied.status_code == 403

    await client.post(
        "/api/workspaces/acme-corp/update",
        json={"settings": {"allow_member_project_creation": True}},
        headers=auth(team.owner),
    )
    project = await _create_project(client, auth(team.member), "Side")
    assert project["key"] == "SID"
    assert project["owner_id"] == team.member.user_id

    # The project owner may update their own project.
    updated = await client.post(
        "/api/workspaces/acme-corp/projects/SID/update", json={"status": "on-hold"}, headers=auth(team.member)
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "on-hold"


async def test_viewer_cannot_create_task(client: AsyncClient, team, auth) -> None:
    await _create_project(client, auth(team.owner))

    denied = await client.post(
        "/api/workspaces/acme-corp/projects/MAD/tasks/create", json={"title": "Nope"}, headers=auth(team.viewer)
    )
    assert denied.status_code == 403
    assert denied.json()["message"] == "Access denied. Viewers cannot create tasks (read-only access)"

    created = await client.post(
        "/api/workspaces/acme-corp/projects/MAD/tasks/create", json={"title": "Yes"}, headers=auth(team.member)
    )
    assert created.status_code == 201
    assert created.json()["ticket_id"] == "MAD-1"


async def test_task_flow(client: AsyncClient, team, auth, notifier) -> None:
    await _create_project(client, auth(team.owner))
    base = "/api/workspaces/acme-corp/projects/mad/tasks"

    first = await client.post(
        f"{base}/create",
        json={"title": "Login screen", "assignee_ids": [team.member.user_id], "priority": "high"},
        headers=auth(team.admin),
    )
    second = await client.post(f"{base}/create", json={"title": "Signup"}, headers=auth(team.admin))
    assert [first.json()["ticket_number"], second.json()["ticket_number"]] == [1, 2]
    assert [n.recipient for n in notifier.sent] == [team.member.email]

    fetched = await client.get(f"{base}/1/get", headers=auth(team.viewer))
    assert fetched.json()["title"] == "Login screen"
    assert fetched.json()["ticket_id"] == "MAD-1"

    updated = await client.post(f"{base}/2/update", json={"status": "done"}, headers=auth(team.member))
    assert updated.json()["status"] == "done"

    mine = await client.get(f"{base}/list", params={"assignee_id": team.member.user_id}, headers=auth(team.member))
    assert [t["ticket_id"] for t in mine.json()] == ["MAD-1"]

    denied = await client.post(f"{base}/1/delete", headers=auth(team.member))
    assert denied.status_code == 403
    deleted = await client.post(f"{base}/1/delete", headers=auth(team.admin))
    assert deleted.status_code == 204
    assert (await client.get(f"{base}/1/get", headers=auth(team.admin))).status_code == 404

    third = await client.post(f"{base}/create", json={"title": "Reset password"}, headers=auth(team.admin))
    assert third.json()["ticket_id"] == "MAD-3"


async def test_unknown_project_and_task_are_404(client: AsyncClient, team, auth) -> None:
    await _create_project(client, auth(team.owner))
    assert (await client.get("/api/workspaces/acme-corp/projects/NOPE/get", headers=auth(team.owner))).status_code == 404
    missing_task = await client.get("/api/workspaces/acme-corp/projects/MAD/tasks/99/get", headers=auth(team.owner))
    assert missing_task.status_code == 404
    assert missing_task.json()["message"] == "Task not found"


# ---------------------------------------------------------------------------
# Comments, attachments, activity
# ---------------------------------------------------------------------------


async def test_comment_permissions(client: AsyncClient, team, auth) -> None:
    await _create_project(client, auth(team.owner))
    await client.post(
        "/api/workspaces/acme-corp/projects/MAD/tasks/create", json={"title": "Discuss"}, headers=auth(team.owner)
    )
    base = "/api/workspaces/acme-corp/projects/MAD/tasks/1/comments"

    comment = await client.post(f"{base}/create", json={"content": "Viewer note"}, headers=auth(team.viewer))
    assert comment.status_code == 201
    comment_id = comment.json()["comment_id"]

    not_author = await client.post(f"{base}/{comment_id}/update", json={"content": "x"}, headers=auth(team.owner))
    assert not_author.status_code == 403

    edited = await client.post(f"{base}/{comment_id}/update", json={"content": "Edited"}, headers=auth(team.viewer))
    assert edited.json()["is_edited"] is True

    member_delete = await client.post(f"{base}/{comment_id}/delete", headers=auth(team.member))
    assert member_delete.status_code == 403
    admin_delete = await client.post(f"{base}/{comment_id}/delete", headers=auth(team.admin))
    assert admin_delete.status_code == 204
    assert (await client.get(f"{base}/list", headers=auth(team.viewer))).json() == []


async def test_attachment_upload_download_delete(client: AsyncClient, team, auth) -> None:
    await _create_project(client, auth(team.owner))
    await client.post(
        "/api/workspaces/acme-corp/projects/MAD/tasks/create", json={"title": "Docs"}, headers=auth(team.owner)
    )
    base = "/api/workspaces/acme-corp/projects/MAD/tasks/1/attachments"
    files = {"file": ("notes.txt", b"hello world", "text/plain")}

    denied = await client.post(f"{base}/upload", files=files, headers=auth(team.viewer))
    assert denied.status_code == 403

    uploaded = await client.post(f"{base}/upload", files=files, headers=auth(team.member))
    assert uploaded.status_code == 201
    body = uploaded.json()
    assert (body["entity_type"], body["original_name"], body["file_size"]) == ("task", "notes.txt", 11)

    listed = await client.get(f"{base}/list", headers=auth(team.viewer))
    assert [a["attachment_id"] for a in listed.json()] == [body["attachment_id"]]

    download = await client.get(
        f"/api/workspaces/acme-corp/attachments/{body['attachment_id']}/download", headers=auth(team.viewer)
    )
    assert download.status_code == 200
    assert download.content == b"hello world"
    assert 'filename="notes.txt"' in download.headers["content-disposition"]

    by_other = await client.post(
        f"/api/workspaces/acme-corp/attachments/{body['attachment_id']}/delete", headers=auth(team.viewer)
    )
    assert by_other.status_code == 403
    by_uploader = await client.post(
        f"/api/workspaces/acme-corp/attachments/{body['attachment_id']}/delete", headers=auth(team.member)
    )
    assert by_uploader.status_code == 204


async def test_non_ascii_filename_downloads(client: AsyncClient, team, auth) -> None:
    await _create_project(client, auth(team.owner))
    uploaded = await client.post(
        "/api/workspaces/acme-corp/projects/MAD/attachments/upload",
        files={"file": ("报告.pdf", b"%PDF-1.7", "application/pdf")},
        headers=auth(team.owner),
    )
    assert uploaded.status_code == 201
    assert uploaded.json()["original_name"] == "报告.pdf"

    download = await client.get(
        f"/api/workspaces/acme-corp/attachments/{uploaded.json()['attachment_id']}/download", headers=auth(team.owner)
    )
    assert download.status_code == 200
    assert download.content == b"%PDF-1.7"
    assert download.headers["content-disposition"] == "attachment; filename*=utf-8''%E6%8A%A5%E5%91%8A.pdf"


async def test_oversized_upload_is_400(client: AsyncClient, team, auth) -> None:
    await _create_project(client, auth(team.owner))
    response = await client.post(
        "/api/workspaces/acme-corp/projects/MAD/attachments/upload",
        files={"file": ("big.bin", b"x" * 2048, "application/octet-stream")},
        headers=auth(team.owner),
    )
    assert response.status_code == 400
    assert "maximum upload size" in response.json()["message"]


async def test_activity_feed(client: AsyncClient, team, auth) -> None:
    await _create_project(client, auth(team.owner))
    await client.post(
        "/api/workspaces/acme-corp/projects/MAD/tasks/create", json={"title": "Track"}, headers=auth(team.owner)
    )

    everything = await client.get("/api/workspaces/acme-corp/activity/list", headers=auth(team.viewer))
    pairs = {(a["entity_type"], a["action"]) for a in everything.json()}
    assert {("workspace", "created"), ("project", "created"), ("task", "created")} <= pairs

    scoped = await client.get(
        "/api/workspaces/acme-corp/activity/list", params={"project": "MAD"}, headers=auth(team.viewer)
    )
    assert {a["entity_type"] for a in scoped.json()} == {"project", "task"}
