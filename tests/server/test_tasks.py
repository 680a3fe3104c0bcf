"""Integration tests for ticket numbering, tasks, comments and attachments."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.db.tables import Attachment, Comment, Project
from workhive.server.errors import BadRequestError, ConflictError, NotFoundError
from workhive.server.managers import tasks as task_manager
from workhive.server.managers.attachments import (
    CommentTarget,
    TaskTarget,
    delete_attachment,
    get_attachment,
    list_attachments,
    read_attachment,
    target_ref,
    upload_attachment,
)
from workhive.server.managers.comments import create_comment, delete_comment, list_comments, update_comment
from workhive.server.managers.identifiers import next_ticket_number
from workhive.server.managers.labels import list_labels
from workhive.server.managers.projects import create_project
from workhive.server.managers.tasks import create_task, delete_task, get_task_by_number, list_tasks, update_task
from workhive.server.models.api import ProjectCreate, TaskCreate, TaskUpdate
from workhive.server.models.enums import AttachmentEntityType, TaskStatus
from workhive.server.storage import LocalBlobStore

pytestmark = pytest.mark.integration


@pytest.fixture
async def project(db_session: AsyncSession, team) -> Project:
    return await create_project(
        db_session, team.workspace, team.owner.user_id, ProjectCreate(name="Mobile App Development")
    )


# ---------------------------------------------------------------------------
# Ticket numbering
# ---------------------------------------------------------------------------


async def test_ticket_numbers_are_sequential(db_session: AsyncSession, team, project: Project) -> None:
    numbers = [
        (await create_task(db_session, project, team.member.user_id, TaskCreate(title=f"Task {i}"))).ticket_number
        for i in range(3)
    ]
    assert numbers == [1, 2, 3]


async def test_ticket_numbers_are_per_project(db_session: AsyncSession, team, project: Project) -> None:
    other = await create_project(db_session, team.workspace, team.owner.user_id, ProjectCreate(name="Web"))
    await create_task(db_session, project, team.owner.user_id, TaskCreate(title="A"))
    await create_task(db_session, project, team.owner.user_id, TaskCreate(title="B"))

    task = await create_task(db_session, other, team.owner.user_id, TaskCreate(title="C"))
    assert task.ticket_number == 1


async def test_deleted_ticket_number_is_not_reissued(db_session: AsyncSession, team, project: Project) -> None:
    await create_task(db_session, project, team.owner.user_id, TaskCreate(title="One"))
    two = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Two"))
    await delete_task(db_session, project, two, team.owner.user_id)

    three = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Three"))
    assert three.ticket_number == 3
    with pytest.raises(NotFoundError):
        await get_task_by_number(db_session, project.project_id, 2)


async def test_lost_race_is_retried_with_fresh_number(
    db_session: AsyncSession, team, project: Project, monkeypatch: pytest.MonkeyPatch
) -> None:
    await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Existing"))

    calls: list[int] = []

    async def stale_first(db: AsyncSession, project_id: str) -> int:
        # First read returns a number a concurrent creator already took.
        calls.append(len(calls))
        if len(calls) == 1:
            return 1
        return await next_ticket_number(db, project_id)

    monkeypatch.setattr(task_manager, "next_ticket_number", stale_first)

    task = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Racer"))
    assert task.ticket_number == 2
    assert len(calls) == 2


async def test_persistent_collision_surfaces_conflict(
    db_session: AsyncSession, team, project: Project, monkeypatch: pytest.MonkeyPatch
) -> None:
    await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Existing"))

    async def always_stale(_db: AsyncSession, _project_id: str) -> int:
        return 1

    monkeypatch.setattr(task_manager, "next_ticket_number", always_stale)

    with pytest.raises(ConflictError, match="ticket number"):
        await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Loser"), retry_attempts=2)

    # The session is still usable after the failed savepoints.
    assert [t.title for t in await list_tasks(db_session, project.project_id)] == ["Existing"]


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------


async def test_assignees_must_be_members(db_session: AsyncSession, team, project: Project, make_user) -> None:
    outsider = await make_user("outsider")
    with pytest.raises(BadRequestError, match="members of the workspace"):
        await create_task(
            db_session, project, team.owner.user_id, TaskCreate(title="X", assignee_ids=[outsider.user_id])
        )


async def test_labels_must_exist(db_session: AsyncSession, team, project: Project) -> None:
    with pytest.raises(BadRequestError, match="Unknown labels"):
        await create_task(db_session, project, team.owner.user_id, TaskCreate(title="X", label_ids=["nope"]))

    labels = await list_labels(db_session, team.workspace.workspace_id)
    task = await create_task(
        db_session, project, team.owner.user_id, TaskCreate(title="X", label_ids=[labels[0].label_id])
    )
    assert task.label_ids == [labels[0].label_id]


async def test_list_tasks_filters(db_session: AsyncSession, team, project: Project) -> None:
    owner_id = team.owner.user_id
    await create_task(db_session, project, owner_id, TaskCreate(title="Todo"))
    await create_task(
        db_session,
        project,
        owner_id,
        TaskCreate(title="Mine", status=TaskStatus.IN_PROGRESS, assignee_ids=[team.member.user_id]),
    )

    in_progress = await list_tasks(db_session, project.project_id, status=TaskStatus.IN_PROGRESS)
    assert [t.title for t in in_progress] == ["Mine"]
    assigned = await list_tasks(db_session, project.project_id, assignee_id=team.member.user_id)
    assert [t.title for t in assigned] == ["Mine"]
    assert [t.title for t in await list_tasks(db_session, project.project_id)] == ["Todo", "Mine"]


async def test_update_task_reports_new_assignees(db_session: AsyncSession, team, project: Project) -> None:
    task = await create_task(
        db_session, project, team.owner.user_id, TaskCreate(title="Shared", assignee_ids=[team.admin.user_id])
    )

    updated, added = await update_task(
        db_session,
        project,
        task,
        TaskUpdate(assignee_ids=[team.admin.user_id, team.member.user_id], status=TaskStatus.REVIEW),
        team.owner.user_id,
    )

    assert added == [team.member.user_id]
    assert updated.status == TaskStatus.REVIEW
    assert updated.ticket_number == task.ticket_number


async def test_empty_update_is_a_no_op(db_session: AsyncSession, team, project: Project) -> None:
    task = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Still"))
    updated, added = await update_task(db_session, project, task, TaskUpdate(), team.owner.user_id)
    assert (updated.title, added) == ("Still", [])


# ---------------------------------------------------------------------------
# Comments and attachments
# ---------------------------------------------------------------------------


async def test_comment_edit_marks_edited(db_session: AsyncSession, team, project: Project) -> None:
    task = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Talk"))
    comment = await create_comment(db_session, project, task, team.viewer.user_id, "First!")
    assert comment.is_edited is False

    edited = await update_comment(db_session, project, comment, "First, edited", team.viewer.user_id)
    assert edited.is_edited is True
    assert edited.edited_at is not None
    assert [c.content for c in await list_comments(db_session, task.task_id)] == ["First, edited"]


async def test_comment_delete_takes_its_attachments(
    db_session: AsyncSession, team, project: Project, tmp_path: Path
) -> None:
    store = LocalBlobStore(tmp_path)
    task = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Talk"))
    comment = await create_comment(db_session, project, task, team.member.user_id, "See attached")
    attachment = await upload_attachment(
        db_session,
        store,
        CommentTarget(project=project, task=task, comment=comment),
        team.member.user_id,
        filename="log.txt",
        content_type=None,
        data=b"trace",
        max_bytes=1024,
    )

    await delete_comment(db_session, project, comment, team.admin.user_id)

    comment_deleted = await db_session.scalar(select(Comment.deleted_at).where(Comment.comment_id == comment.comment_id))
    attachment_deleted = await db_session.scalar(
        select(Attachment.deleted_at).where(Attachment.attachment_id == attachment.attachment_id)
    )
    assert comment_deleted is not None
    assert attachment_deleted == comment_deleted
    assert await list_comments(db_session, task.task_id) == []
    # The blob itself is kept.
    assert await store.read(attachment.storage_key) == b"trace"


async def test_attachment_lifecycle(db_session: AsyncSession, team, project: Project, tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)
    task = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Docs"))
    target = TaskTarget(project=project, task=task)

    attachment = await upload_attachment(
        db_session,
        store,
        target,
        team.member.user_id,
        filename="spec.pdf",
        content_type="application/pdf",
        data=b"%PDF-1.7",
        max_bytes=1024,
    )
    assert (attachment.entity_type, attachment.entity_id) == target_ref(target)
    assert attachment.entity_type == AttachmentEntityType.TASK
    assert attachment.file_size == 8
    assert attachment.storage_key == f"{team.workspace.workspace_id}/{attachment.attachment_id}"

    fetched = await get_attachment(db_session, team.workspace.workspace_id, attachment.attachment_id)
    assert await read_attachment(store, fetched) == b"%PDF-1.7"
    assert [a.attachment_id for a in await list_attachments(db_session, target)] == [attachment.attachment_id]

    await delete_attachment(db_session, fetched, team.member.user_id)
    assert await list_attachments(db_session, target) == []
    with pytest.raises(NotFoundError):
        await get_attachment(db_session, team.workspace.workspace_id, attachment.attachment_id)


async def test_attachment_size_limits(db_session: AsyncSession, team, project: Project, tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)
    task = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Big"))
    target = TaskTarget(project=project, task=task)

    with pytest.raises(BadRequestError, match="File is empty"):
        await upload_attachment(
            db_session, store, target, team.owner.user_id, filename="a", content_type=None, data=b"", max_bytes=4
        )
    with pytest.raises(BadRequestError, match="maximum upload size of 4 bytes"):
        await upload_attachment(
            db_session, store, target, team.owner.user_id, filename="a", content_type=None, data=b"12345", max_bytes=4
        )


async def test_missing_blob_is_not_found(db_session: AsyncSession, team, project: Project, tmp_path: Path) -> None:
    task = await create_task(db_session, project, team.owner.user_id, TaskCreate(title="Lost"))
    attachment = await upload_attachment(
        db_session,
        LocalBlobStore(tmp_path / "one"),
        TaskTarget(project=project, task=task),
        team.owner.user_id,
        filename="a.txt",
        content_type="text/plain",
        data=b"x",
        max_bytes=16,
    )
    with pytest.raises(NotFoundError, match="Attachment file not found"):
        await read_attachment(LocalBlobStore(tmp_path / "two"), attachment)
