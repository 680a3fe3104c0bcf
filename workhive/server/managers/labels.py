"""Workspace labels."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from workhive.server.db.tables import Label
from workhive.server.errors import ConflictError
from workhive.server.managers.identifiers import violated_constraint

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from workhive.server.models.api import LabelCreate

NAME_CONSTRAINT = "uq_labels_workspace_name_active"


async def list_labels(db: AsyncSession, workspace_id: str) -> list[Label]:
    result = await db.execute(
        select(Label).where(Label.workspace_id == workspace_id, Label.deleted_at.is_(None)).order_by(Label.name)
    )
    return list(result.scalars().all())


async def create_label(db: AsyncSession, workspace_id: str, body: LabelCreate) -> Label:
    """Create a label.  Raises ``ConflictError`` if the name is taken in the workspace."""
    label = Label(label_id=uuid.uuid4().hex, workspace_id=workspace_id, **body.model_dump())
    try:
        async with db.begin_nested():
            db.add(label)
    except IntegrityError as exc:
        if violated_constraint(exc) not in (None, NAME_CONSTRAINT):
            raise
        msg = f"Label '{body.name}' already exists in this workspace"
        raise ConflictError(msg) from exc
    await db.commit()
    await db.refresh(label)
    return label


async def existing_label_ids(db: AsyncSession, workspace_id: str, label_ids: Iterable[str]) -> set[str]:
    """Subset of *label_ids* that are live labels of the workspace."""
    wanted = set(label_ids)
    if not wanted:
        return set()
    result = await db.execute(
        select(Label.label_id).where(
            Label.workspace_id == workspace_id,
            Label.label_id.in_(wanted),
            Label.deleted_at.is_(None),
        )
    )
    return set(result.scalars().all())
