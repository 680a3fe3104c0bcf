"""Workspace lifecycle: create, list, get, update, delete.

Creating a workspace writes the workspace row, the creator's OWNER
membership and the default labels in one transaction, so a workspace never
exists without its owner.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import select

from workhive.server.db.tables import Label, User, Workspace, WorkspaceMember
from workhive.server.errors import NotFoundError
from workhive.server.managers.activity import diff_changes, record_activity
from workhive.server.managers.cascade import CascadeResult, cascade_workspace_delete
from workhive.server.managers.identifiers import generate_workspace_slug, insert_with_retry
from workhive.server.models.enums import ActivityAction, EntityType, WorkspaceRole

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from workhive.server.models.api import WorkspaceCreate, WorkspaceUpdate

DEFAULT_LABELS: tuple[dict[str, str], ...] = (
    {"name": "bug", "color": "#ef4444", "description": "Something isn't working"},
    {"name": "feature", "color": "#3b82f6", "description": "New feature or request"},
    {"name": "enhancement", "color": "#10b981", "description": "Improvement to existing feature"},
    {"name": "documentation", "color": "#8b5cf6", "description": "Documentation related"},
)

SLUG_CONSTRAINT = "uq_workspaces_slug_active"


async def create_workspace(
    db: AsyncSession,
    body: WorkspaceCreate,
    owner: User,
    *,
    max_attempts: int = 999,
    retry_attempts: int = 3,
) -> tuple[Workspace, WorkspaceMember]:
    """Create a workspace owned by *owner*.

    Raises ``BadRequestError`` if no slug can be derived,
    ``GenerationExhaustedError`` if the slug search runs out, and
    ``ConflictError`` if concurrent creators keep winning the slug.
    """
    workspace_id = uuid.uuid4().hex

    async def build() -> Workspace:
        slug = await generate_workspace_slug(db, body.name, body.slug, max_attempts=max_attempts)
        return Workspace(
            workspace_id=workspace_id,
            name=body.name,
            slug=slug,
            description=body.description,
            logo=body.logo,
            owner_id=owner.user_id,
            settings={"allow_member_project_creation": False},
        )

    workspace = await insert_with_retry(
        db, build, constraint=SLUG_CONSTRAINT, attempts=retry_attempts, what="workspace slug"
    )

    membership = WorkspaceMember(
        member_id=uuid.uuid4().hex,
        workspace_id=workspace_id,
        user_id=owner.user_id,
        role=WorkspaceRole.OWNER,
        invited_by=None,
    )
    db.add(membership)
    db.add_all(
        Label(label_id=uuid.uuid4().hex, workspace_id=workspace_id, **label) for label in DEFAULT_LABELS
    )
    record_activity(
        db,
        workspace_id=workspace_id,
        user_id=owner.user_id,
        entity_type=EntityType.WORKSPACE,
        entity_id=workspace_id,
        action=ActivityAction.CREATED,
        description=f"Created workspace {workspace.name}",
    )
    await db.commit()
    await db.refresh(workspace)
    await db.refresh(membership)

    logger.info("Workspace created: {} (slug={}, owner={})", workspace_id, workspace.slug, owner.user_id)
    return workspace, membership


async def list_all_workspaces(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> list[Workspace]:
    """Every non-deleted workspace, newest first.  Super-admin view."""
    stmt = (
        select(Workspace)
        .where(Workspace.deleted_at.is_(None))
        .order_by(Workspace.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_user_workspaces(db: AsyncSession, user_id: str) -> list[tuple[Workspace, WorkspaceMember]]:
    """Workspaces *user_id* belongs to, with the membership, newest membership first."""
    stmt = (
        select(Workspace, WorkspaceMember)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.workspace_id)
        .where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.deleted_at.is_(None),
            Workspace.deleted_at.is_(None),
        )
        .order_by(WorkspaceMember.created_at.desc())
    )
    result = await db.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def get_workspace_by_slug(db: AsyncSession, slug: str) -> Workspace:
    """Get a live workspace by slug.  Raises ``NotFoundError`` if missing or deleted."""
    result = await db.execute(select(Workspace).where(Workspace.slug == slug, Workspace.deleted_at.is_(None)))
    workspace = result.scalar_one_or_none()
    if workspace is None:
        msg = "Workspace not found"
        raise NotFoundError(msg)
    return workspace


async def update_workspace(db: AsyncSession, workspace: Workspace, body: WorkspaceUpdate, actor_id: str) -> Workspace:
    """Partially update name / description / logo / settings."""
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name", ...) is None:
        changes.pop("name")
    if not changes:
        return workspace

    before = {key: getattr(workspace, key) for key in changes}
    settings_patch = changes.pop("settings", None)
    for key, value in changes.items():
        setattr(workspace, key, value)
    if settings_patch:
        patch = {key: value for key, value in settings_patch.items() if value is not None}
        # Reassign so SQLAlchemy sees the JSONB change.
        workspace.settings = {**workspace.settings, **patch}

    after = {key: getattr(workspace, key) for key in before}
    record_activity(
        db,
        workspace_id=workspace.workspace_id,
        user_id=actor_id,
        entity_type=EntityType.WORKSPACE,
        entity_id=workspace.workspace_id,
        action=ActivityAction.UPDATED,
        changes=diff_changes(before, after),
    )
    await db.commit()
    await db.refresh(workspace)
    return workspace


async def delete_workspace(db: AsyncSession, workspace: Workspace, actor_id: str) -> CascadeResult:
    """Soft-delete the workspace and cascade to all its dependents in one transaction.

    The deletion is logged before the cascade so the entry is stamped with the
    same ``deleted_at`` as everything else.
    """
    record_activity(
        db,
        workspace_id=workspace.workspace_id,
        user_id=actor_id,
        entity_type=EntityType.WORKSPACE,
        entity_id=workspace.workspace_id,
        action=ActivityAction.DELETED,
        description=f"Deleted workspace {workspace.name}",
    )
    await db.flush()
    result = await cascade_workspace_delete(db, workspace)
    await db.commit()
    logger.info(
        "Workspace deleted: {} (slug={}, cascaded={})",
        workspace.workspace_id,
        workspace.slug,
        result.counts,
    )
    return result
