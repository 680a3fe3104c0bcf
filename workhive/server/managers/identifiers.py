"""Human-readable identifiers: workspace slugs, project keys, ticket numbers.

Derivation is pure; uniqueness is checked against the database right before
the creating insert.  The check alone cannot stop two concurrent creators
from picking the same candidate, so inserts go through
:func:`insert_with_retry`, which relies on the unique indexes in
``db/tables.py`` and regenerates the identifier when it loses the race.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.db.tables import Base, Project, Task, Workspace
from workhive.server.errors import BadRequestError, ConflictError, GenerationExhaustedError

RowT = TypeVar("RowT", bound=Base)

DEFAULT_PROJECT_KEY = "PROJ"

_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_KEY_STRIP = re.compile(r"[^A-Z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")

# -- Derivation ----------------------------------------------------------------


def slugify(name: str) -> str:
    """Derive a URL-safe slug: ``"My Awesome Workspace"`` -> ``"my-awesome-workspace"``.

    Returns an empty string when *name* has no usable characters.
    """
    slug = _SLUG_STRIP.sub("", name.lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def derive_project_key(name: str) -> str:
    """Derive a short uppercase key from a project name.

    One word keeps its first three characters (``"Mobile"`` -> ``"MOB"``);
    several words keep their initials, at most four
    (``"Mobile App Development"`` -> ``"MAD"``).
    """
    words = _KEY_STRIP.sub("", name.upper()).split()
    if not words:
        return DEFAULT_PROJECT_KEY
    if len(words) == 1:
        return words[0][:3]
    return "".join(word[0] for word in words)[:4]


def format_ticket_id(project_key: str, ticket_number: int) -> str:
    return f"{project_key}-{ticket_number}"


# -- Collision probing -----------------------------------------------------------


async def _first_free(
    base: str,
    *,
    suffixed: Callable[[int], str],
    is_taken: Callable[[str], Awaitable[bool]],
    max_attempts: int,
    what: str,
) -> str:
    candidate = base
    for counter in range(1, max_attempts + 2):
        if not await is_taken(candidate):
            return candidate
        candidate = suffixed(counter)
    msg = f"Unable to generate a unique {what} for '{base}' after {max_attempts} attempts"
    raise GenerationExhaustedError(msg)


async def find_available_slug(db: AsyncSession, base_slug: str, *, max_attempts: int = 999) -> str:
    """Return *base_slug* or the first free ``base-1``, ``base-2``, ...

    Only non-deleted workspaces hold a slug.
    """

    async def is_taken(candidate: str) -> bool:
        stmt = select(exists().where(Workspace.slug == candidate, Workspace.deleted_at.is_(None)))
        return bool(await db.scalar(stmt))

    return await _first_free(
        base_slug,
        suffixed=lambda n: f"{base_slug}-{n}",
        is_taken=is_taken,
        max_attempts=max_attempts,
        what="slug",
    )


async def generate_workspace_slug(
    db: AsyncSession,
    name: str,
    explicit: str | None = None,
    *,
    max_attempts: int = 999,
) -> str:
    """Slug for a new workspace: explicit if given, else derived from *name*."""
    base = explicit or slugify(name)
    if not base:
        msg = "Cannot derive a slug from this workspace name; provide an explicit slug"
        raise BadRequestError(msg)
    return await find_available_slug(db, base, max_attempts=max_attempts)


async def find_available_key(
    db: AsyncSession,
    workspace_id: str,
    base_key: str,
    *,
    max_attempts: int = 999,
) -> str:
    """Return *base_key* or the first free ``BASE1``, ``BASE2``, ...

    Soft-deleted projects keep their key reserved.
    """

    async def is_taken(candidate: str) -> bool:
        stmt = select(exists().where(Project.workspace_id == workspace_id, Project.key == candidate))
        return bool(await db.scalar(stmt))

    return await _first_free(
        base_key,
        suffixed=lambda n: f"{base_key}{n}",
        is_taken=is_taken,
        max_attempts=max_attempts,
        what="project key",
    )


async def generate_project_key(
    db: AsyncSession,
    workspace_id: str,
    name: str,
    explicit: str | None = None,
    *,
    max_attempts: int = 999,
) -> str:
    base = explicit.upper() if explicit else derive_project_key(name)
    return await find_available_key(db, workspace_id, base, max_attempts=max_attempts)


# -- Ticket numbering --------------------------------------------------------------


async def next_ticket_number(db: AsyncSession, project_id: str) -> int:
    """Highest ticket number ever issued in the project, plus one.

    Deleted tasks are counted too: their numbers stay reserved by the
    ``(project_id, ticket_number)`` index, so reissuing one would only fail.
    """
    highest = await db.scalar(select(func.max(Task.ticket_number)).where(Task.project_id == project_id))
    return (highest or 0) + 1


# -- Conflict-safe insert ------------------------------------------------------------


def violated_constraint(exc: IntegrityError) -> str | None:
    """Name of the constraint behind *exc*, when the driver reports it."""
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None)


async def insert_with_retry(
    db: AsyncSession,
    build: Callable[[], Awaitable[RowT]],
    *,
    constraint: str,
    attempts: int,
    what: str,
) -> RowT:
    """Insert the row produced by *build*, regenerating it on a lost race.

    *build* must re-run its identifier generation each time it is called.
    Each try runs inside a SAVEPOINT so a unique violation does not poison the
    surrounding transaction.  Violations of any constraint other than
    *constraint* are not retried.  After *attempts* lost races a
    ``ConflictError`` is raised.
    """
    for attempt in range(1, attempts + 1):
        row = await build()
        try:
            async with db.begin_nested():
                db.add(row)
        except IntegrityError as exc:
            name = violated_constraint(exc)
            if name is not None and name != constraint:
                raise
            logger.warning("{} collided on {} (attempt {}/{})", what, name or "unique index", attempt, attempts)
            if attempt == attempts:
                msg = f"Could not allocate a unique {what}, please retry"
                raise ConflictError(msg) from exc
            continue
        return row

    msg = "attempts must be >= 1"
    raise ValueError(msg)
