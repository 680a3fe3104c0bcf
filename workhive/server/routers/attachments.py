"""Attachment endpoints (RPC-style).

Files can be attached to a project, a task or a comment.  Each kind of target
has its own upload / list pair; download and delete address the attachment
directly.
"""

from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.db.tables import Attachment
from workhive.server.deps import Blobs, DbSession, Settings
from workhive.server.gate import WorkspaceContext, WorkspaceCtx, require
from workhive.server.managers import attachments as manager
from workhive.server.managers.attachments import AttachmentTarget, CommentTarget, ProjectTarget, TaskTarget
from workhive.server.models.api import AttachmentResponse
from workhive.server.policy import Action
from workhive.server.routers.scope import CommentDep, ProjectDep, TaskDep
from workhive.server.settings import HiveSettings
from workhive.server.storage import BlobStore

router = APIRouter(prefix="/workspaces/{slug}", tags=["attachments"])

Uploader = Annotated[WorkspaceContext, require(Action.UPLOAD_ATTACHMENT)]


async def project_target(project: ProjectDep) -> ProjectTarget:
    return ProjectTarget(project=project)


async def task_target(project: ProjectDep, task: TaskDep) -> TaskTarget:
    return TaskTarget(project=project, task=task)


async def comment_target(project: ProjectDep, task: TaskDep, comment: CommentDep) -> CommentTarget:
    return CommentTarget(project=project, task=task, comment=comment)


async def _upload(
    ctx: WorkspaceContext,
    target: AttachmentTarget,
    file: UploadFile,
    db: AsyncSession,
    store: BlobStore,
    settings: HiveSettings,
) -> Attachment:
    # Read one byte past the limit so oversized files are detected without
    # buffering all of them.
    data = await file.read(settings.max_upload_bytes + 1)
    return await manager.upload_attachment(
        db,
        store,
        target,
        ctx.user.user_id,
        filename=file.filename or "",
        content_type=file.content_type,
        data=data,
        max_bytes=settings.max_upload_bytes,
    )


# -- Project attachments -------------------------------------------------------


@router.post(
    "/projects/{key}/attachments/upload", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED
)
async def upload_project_attachment(
    ctx: Uploader,
    target: Annotated[ProjectTarget, Depends(project_target)],
    file: Annotated[UploadFile, File()],
    db: DbSession,
    store: Blobs,
    settings: Settings,
) -> Attachment:
    return await _upload(ctx, target, file, db, store, settings)


@router.get("/projects/{key}/attachments/list", response_model=list[AttachmentResponse])
async def list_project_attachments(
    target: Annotated[ProjectTarget, Depends(project_target)], db: DbSession
) -> list[Attachment]:
    return await manager.list_attachments(db, target)


# -- Task attachments ----------------------------------------------------------


@router.post(
    "/projects/{key}/tasks/{number}/attachments/upload",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_task_attachment(
    ctx: Uploader,
    target: Annotated[TaskTarget, Depends(task_target)],
    file: Annotated[UploadFile, File()],
    db: DbSession,
    store: Blobs,
    settings: Settings,
) -> Attachment:
    return await _upload(ctx, target, file, db, store, settings)


@router.get("/projects/{key}/tasks/{number}/attachments/list", response_model=list[AttachmentResponse])
async def list_task_attachments(target: Annotated[TaskTarget, Depends(task_target)], db: DbSession) -> list[Attachment]:
    return await manager.list_attachments(db, target)


# -- Comment attachments -------------------------------------------------------


@router.post(
    "/projects/{key}/tasks/{number}/comments/{comment_id}/attachments/upload",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_comment_attachment(
    ctx: Uploader,
    target: Annotated[CommentTarget, Depends(comment_target)],
    file: Annotated[UploadFile, File()],
    db: DbSession,
    store: Blobs,
    settings: Settings,
) -> Attachment:
    return await _upload(ctx, target, file, db, store, settings)


@router.get(
    "/projects/{key}/tasks/{number}/comments/{comment_id}/attachments/list",
    response_model=list[AttachmentResponse],
)
async def list_comment_attachments(
    target: Annotated[CommentTarget, Depends(comment_target)], db: DbSession
) -> list[Attachment]:
    return await manager.list_attachments(db, target)


# -- By id -------------------------------------------------------------------------


def content_disposition(filename: str) -> str:
    """``attachment`` disposition header, percent-encoded (RFC 5987) when *filename* needs escaping."""
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


@router.get("/attachments/{attachment_id}/download")
async def download_attachment(attachment_id: str, ctx: WorkspaceCtx, db: DbSession, store: Blobs) -> Response:
    attachment = await manager.get_attachment(db, ctx.workspace.workspace_id, attachment_id)
    data = await manager.read_attachment(store, attachment)
    return Response(
        content=data,
        media_type=attachment.mime_type,
        headers={"Content-Disposition": content_disposition(attachment.original_name)},
    )


@router.post("/attachments/{attachment_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(attachment_id: str, ctx: WorkspaceCtx, db: DbSession) -> None:
    """Delete an attachment (its uploader, or owner / admin).  The file is kept."""
    attachment = await manager.get_attachment(db, ctx.workspace.workspace_id, attachment_id)
    ctx.authorize(Action.DELETE_ATTACHMENT, author_id=attachment.uploaded_by)
    await manager.delete_attachment(db, attachment, ctx.user.user_id)
