"""Activity log: who did what to which entity.

Entries are added to the caller's unit of work and committed together with
the change they describe.
"""

from __future__ import annotations

import uuid

from pydantic_core import to_jsonable_python
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.db.tables import ActivityLog
from workhive.server.models.enums import ActivityAction, EntityType


def record_activity(
    db: AsyncSession,
    *,
    workspace_id: str,
    user_id: str,
    entity_type: EntityType,
    entity_id: str,
    action: ActivityAction,
    project_id: str | None = None,
    changes: dict | None = None,
    description: str | None = None,
) -> ActivityLog:
    """Stage an activity entry (no flush, no commit)."""
    entry = ActivityLog(
        activity_id=uuid.uuid4().hex,
        workspace_id=workspace_id,
        project_id=project_id,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        changes=changes or {},
        description=description,
    )
    db.add(entry)
    return entry


def diff_changes(before: dict, after: dict) -> dict:
    """``{field: {"from": old, "to": new}}`` for every field that changed.

    Values are converted to JSON-safe types (datetimes become ISO strings).
    """
    changed = {
        key: {"from": before.get(key), "to": value}
        for key, value in after.items()
        if before.get(key) != value
    }
    return to_jsonable_python(changed)


async def list_activity(
    db: AsyncSession,
    workspace_id: str,
    *,
    project_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[ActivityLog]:
    """Non-deleted activity of a workspace, newest first."""
    stmt = (
        select(ActivityLog)
        .where(ActivityLog.workspace_id == workspace_id, ActivityLog.deleted_at.is_(None))
        .order_by(ActivityLog.created_at.desc())
    )
    if project_id is not None:
        stmt = stmt.where(ActivityLog.project_id == project_id)
    stmt = stmt.limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())
