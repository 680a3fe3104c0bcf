"""FastAPI dependency injection for DB sessions, settings, blobs, notifications and rate limits.

Usage in route handlers::

    @router.post("/things/create")
    async def create_thing(db: DbSession, settings: Settings, body: ThingCreate) -> ThingResponse:
        ...

Dependencies raise HTTP 503 if the backing service was not configured
(WORKHIVE_DATABASE_URL unset, or the app started without its lifespan).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.notify import Notifier
from workhive.server.ratelimit import RateLimiter
from workhive.server.settings import HiveSettings, get_settings
from workhive.server.storage import BlobStore


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async SQLAlchemy session, closing it after the request.

    Managers commit their own unit of work.  If the handler raises, the session
    is simply closed and the open transaction is rolled back.
    """
    session_factory = getattr(request.app.state, "db_session_factory", None)
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured (WORKHIVE_DATABASE_URL is unset).",
        )
    session: AsyncSession = session_factory()
    try:
        yield session
    finally:
        await session.close()


def get_blob_store(request: Request) -> BlobStore:
    store: BlobStore | None = getattr(request.app.state, "blob_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Attachment storage not configured.",
        )
    return store


def get_notifier(request: Request) -> Notifier:
    notifier: Notifier | None = getattr(request.app.state, "notifier", None)
    if notifier is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notifications not configured.",
        )
    return notifier


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiter not configured.",
        )
    return limiter


# -- Annotated type aliases for concise route signatures ---------------------

DbSession = Annotated[AsyncSession, Depends(get_db)]
"""Annotated dependency: async SQLAlchemy session (auto-closed after request)."""

Settings = Annotated[HiveSettings, Depends(get_settings)]

Blobs = Annotated[BlobStore, Depends(get_blob_store)]

NotifierDep = Annotated[Notifier, Depends(get_notifier)]

Limiter = Annotated[RateLimiter, Depends(get_rate_limiter)]


def rate_limited(bucket: str) -> Any:
    """Route dependency counting the request against *bucket* for the client address."""

    async def dependency(request: Request, limiter: Limiter) -> None:
        client = request.client.host if request.client else "unknown"
        limiter.hit(bucket, client)

    return Depends(dependency)
