"""File attachments on projects, tasks and comments.

An attachment row points at its owner through ``(entity_type, entity_id)``.
Callers pass an :data:`AttachmentTarget` that has already been resolved
against the right table, so a row can never reference an entity of the wrong
kind or from another workspace.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, assert_never

from loguru import logger
from sqlalchemy import select

from workhive.server.db.tables import Attachment, Comment, Project, Task
from workhive.server.errors import BadRequestError, NotFoundError
from workhive.server.managers.activity import record_activity
from workhive.server.models.enums import ActivityAction, AttachmentEntityType, EntityType
from workhive.server.storage import storage_key

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from workhive.server.storage import BlobStore

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class ProjectTarget:
    project: Project


@dataclass(frozen=True)
class TaskTarget:
    project: Project
    task: Task


@dataclass(frozen=True)
class CommentTarget:
    project: Project
    task: Task
    comment: Comment


AttachmentTarget = ProjectTarget | TaskTarget | CommentTarget


def target_ref(target: AttachmentTarget) -> tuple[AttachmentEntityType, str]:
    """The ``(entity_type, entity_id)`` pair stored on the attachment row."""
    match target:
        case ProjectTarget(project=project):
            return AttachmentEntityType.PROJECT, project.project_id
        case TaskTarget(task=task):
            return AttachmentEntityType.TASK, task.task_id
        case CommentTarget(comment=comment):
            return AttachmentEntityType.COMMENT, comment.comment_id
        case _:
            assert_never(target)


async def upload_attachment(
    db: AsyncSession,
    store: BlobStore,
    target: AttachmentTarget,
    uploader_id: str,
    *,
    filename: str,
    content_type: str | None,
    data: bytes,
    max_bytes: int,
) -> Attachment:
    """Store *data* and record it as an attachment on *target*.

    Raises ``BadRequestError`` for an empty file or one above *max_bytes*.
    """
    if not data:
        msg = "File is empty"
        raise BadRequestError(msg)
    if len(data) > max_bytes:
        msg = f"File exceeds the maximum upload size of {max_bytes} bytes"
        raise BadRequestError(msg)

    entity_type, entity_id = target_ref(target)
    workspace_id = target.project.workspace_id
    attachment_id = uuid.uuid4().hex
    key = storage_key(workspace_id, attachment_id)
    await store.write(key, data)

    attachment = Attachment(
        attachment_id=attachment_id,
        workspace_id=workspace_id,
        entity_type=entity_type,
        entity_id=entity_id,
        uploaded_by=uploader_id,
        original_name=filename or attachment_id,
        mime_type=content_type or DEFAULT_MIME_TYPE,
        file_size=len(data),
        storage_key=key,
    )
    db.add(attachment)
    record_activity(
        db,
        workspace_id=workspace_id,
        project_id=target.project.project_id,
        user_id=uploader_id,
        entity_type=EntityType.ATTACHMENT,
        entity_id=attachment_id,
        action=ActivityAction.CREATED,
        description=f"Attached {attachment.original_name} to {entity_type} {entity_id}",
    )
    await db.commit()
    await db.refresh(attachment)
    logger.info("Attachment uploaded: {} ({} bytes) on {} {}", attachment_id, len(data), entity_type, entity_id)
    return attachment


async def list_attachments(db: AsyncSession, target: AttachmentTarget) -> list[Attachment]:
    entity_type, entity_id = target_ref(target)
    result = await db.execute(
        select(Attachment)
        .where(
            Attachment.workspace_id == target.project.workspace_id,
            Attachment.entity_type == entity_type,
            Attachment.entity_id == entity_id,
            Attachment.deleted_at.is_(None),
        )
        .order_by(Attachment.created_at.asc())
    )
    return list(result.scalars().all())


async def get_attachment(db: AsyncSession, workspace_id: str, attachment_id: str) -> Attachment:
    attachment = await db.get(Attachment, attachment_id)
    if attachment is None or attachment.workspace_id != workspace_id or attachment.deleted_at is not None:
        msg = "Attachment not found"
        raise NotFoundError(msg)
    return attachment


async def read_attachment(store: BlobStore, attachment: Attachment) -> bytes:
    """Blob bytes of *attachment*.  Raises ``NotFoundError`` if the blob is gone."""
    try:
        return await store.read(attachment.storage_key)
    except FileNotFoundError:
        logger.error("Attachment blob missing: {} (key={})", attachment.attachment_id, attachment.storage_key)
        msg = "Attachment file not found"
        raise NotFoundError(msg) from None


async def delete_attachment(db: AsyncSession, attachment: Attachment, actor_id: str) -> None:
    """Soft-delete the attachment row.  The blob is kept."""
    attachment.deleted_at = datetime.now(UTC)
    record_activity(
        db,
        workspace_id=attachment.workspace_id,
        user_id=actor_id,
        entity_type=EntityType.ATTACHMENT,
        entity_id=attachment.attachment_id,
        action=ActivityAction.DELETED,
        description=f"Removed {attachment.original_name}",
    )
    await db.commit()
