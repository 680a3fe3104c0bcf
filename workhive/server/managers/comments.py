"""Task comments."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from workhive.server.db.tables import Attachment, Comment, Project, Task
from workhive.server.errors import NotFoundError
from workhive.server.managers.activity import record_activity
from workhive.server.models.enums import ActivityAction, AttachmentEntityType, EntityType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def create_comment(db: AsyncSession, project: Project, task: Task, author_id: str, content: str) -> Comment:
    comment = Comment(comment_id=uuid.uuid4().hex, task_id=task.task_id, author_id=author_id, content=content)
    db.add(comment)
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=author_id,
        entity_type=EntityType.COMMENT,
        entity_id=comment.comment_id,
        action=ActivityAction.CREATED,
    )
    await db.commit()
    await db.refresh(comment)
    return comment


async def list_comments(db: AsyncSession, task_id: str) -> list[Comment]:
    """Live comments of a task, oldest first."""
    result = await db.execute(
        select(Comment)
        .where(Comment.task_id == task_id, Comment.deleted_at.is_(None))
        .order_by(Comment.created_at.asc())
    )
    return list(result.scalars().all())


async def get_comment(db: AsyncSession, task_id: str, comment_id: str) -> Comment:
    comment = await db.get(Comment, comment_id)
    if comment is None or comment.task_id != task_id or comment.deleted_at is not None:
        msg = "Comment not found"
        raise NotFoundError(msg)
    return comment


async def update_comment(db: AsyncSession, project: Project, comment: Comment, content: str, actor_id: str) -> Comment:
    """Replace the content and flag the comment as edited."""
    previous = comment.content
    comment.content = content
    comment.is_edited = True
    comment.edited_at = datetime.now(UTC)
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=actor_id,
        entity_type=EntityType.COMMENT,
        entity_id=comment.comment_id,
        action=ActivityAction.UPDATED,
        changes={"content": {"from": previous, "to": content}},
    )
    await db.commit()
    await db.refresh(comment)
    return comment


async def delete_comment(db: AsyncSession, project: Project, comment: Comment, actor_id: str) -> None:
    """Soft-delete the comment and the attachments on it with one timestamp."""
    deleted_at = datetime.now(UTC)
    comment.deleted_at = deleted_at
    await db.execute(
        update(Attachment)
        .where(
            Attachment.entity_type == AttachmentEntityType.COMMENT,
            Attachment.entity_id == comment.comment_id,
            Attachment.deleted_at.is_(None),
        )
        .values(deleted_at=deleted_at)
        .execution_options(synchronize_session=False)
    )
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=actor_id,
        entity_type=EntityType.COMMENT,
        entity_id=comment.comment_id,
        action=ActivityAction.DELETED,
    )
    await db.commit()
