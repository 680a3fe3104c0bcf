"""Project CRUD operations.

The project key is chosen once at creation (derived from the name unless the
caller supplies one) and never changes; tasks display as ``KEY-<number>``.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import select

from workhive.server.db.tables import Project, Workspace
from workhive.server.errors import NotFoundError
from workhive.server.managers.activity import diff_changes, record_activity
from workhive.server.managers.cascade import CascadeResult, cascade_project_delete
from workhive.server.managers.identifiers import generate_project_key, insert_with_retry
from workhive.server.models.enums import ActivityAction, EntityType, ProjectStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from workhive.server.models.api import ProjectCreate, ProjectUpdate

KEY_CONSTRAINT = "uq_projects_workspace_id"


async def create_project(
    db: AsyncSession,
    workspace: Workspace,
    owner_id: str,
    body: ProjectCreate,
    *,
    max_attempts: int = 999,
    retry_attempts: int = 3,
) -> Project:
    """Create a project in *workspace*, allocating a workspace-unique key."""
    project_id = uuid.uuid4().hex

    async def build() -> Project:
        key = await generate_project_key(
            db, workspace.workspace_id, body.name, body.key, max_attempts=max_attempts
        )
        return Project(
            project_id=project_id,
            workspace_id=workspace.workspace_id,
            name=body.name,
            key=key,
            description=body.description,
            owner_id=owner_id,
            status=body.status,
            start_date=body.start_date,
            due_date=body.due_date,
        )

    project = await insert_with_retry(db, build, constraint=KEY_CONSTRAINT, attempts=retry_attempts, what="project key")
    record_activity(
        db,
        workspace_id=workspace.workspace_id,
        project_id=project_id,
        user_id=owner_id,
        entity_type=EntityType.PROJECT,
        entity_id=project_id,
        action=ActivityAction.CREATED,
        description=f"Created project {project.key} ({project.name})",
    )
    await db.commit()
    await db.refresh(project)
    logger.info("Project created: {} (key={}, workspace={})", project_id, project.key, workspace.workspace_id)
    return project


async def list_projects(
    db: AsyncSession,
    workspace_id: str,
    *,
    status: ProjectStatus | None = None,
) -> list[Project]:
    """Live projects of the workspace, newest first."""
    stmt = (
        select(Project)
        .where(Project.workspace_id == workspace_id, Project.deleted_at.is_(None))
        .order_by(Project.created_at.desc())
    )
    if status is not None:
        stmt = stmt.where(Project.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_project_by_key(db: AsyncSession, workspace_id: str, key: str) -> Project:
    """Get a live project by key.  Raises ``NotFoundError`` if missing or deleted."""
    result = await db.execute(
        select(Project).where(
            Project.workspace_id == workspace_id,
            Project.key == key.upper(),
            Project.deleted_at.is_(None),
        )
    )
    project = result.scalar_one_or_none()
    if project is None:
        msg = "Project not found"
        raise NotFoundError(msg)
    return project


async def update_project(db: AsyncSession, project: Project, body: ProjectUpdate, actor_id: str) -> Project:
    changes = body.model_dump(exclude_unset=True)
    for key in ("name", "status"):
        if changes.get(key, ...) is None:
            del changes[key]
    if not changes:
        return project

    before = {key: getattr(project, key) for key in changes}
    for key, value in changes.items():
        setattr(project, key, value)

    status_changed = "status" in changes and before["status"] != changes["status"]
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=actor_id,
        entity_type=EntityType.PROJECT,
        entity_id=project.project_id,
        action=ActivityAction.STATUS_CHANGED if status_changed else ActivityAction.UPDATED,
        changes=diff_changes(before, changes),
    )
    await db.commit()
    await db.refresh(project)
    return project


async def delete_project(db: AsyncSession, project: Project, actor_id: str) -> CascadeResult:
    """Soft-delete the project with its tasks, comments and attachments.

    The key stays reserved: a new project can never reuse it.
    """
    result = await cascade_project_delete(db, project)
    record_activity(
        db,
        workspace_id=project.workspace_id,
        project_id=project.project_id,
        user_id=actor_id,
        entity_type=EntityType.PROJECT,
        entity_id=project.project_id,
        action=ActivityAction.DELETED,
        description=f"Deleted project {project.key}",
    )
    await db.commit()
    logger.info("Project deleted: {} (key={}, cascaded={})", project.project_id, project.key, result.counts)
    return result
