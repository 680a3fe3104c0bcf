"""Async SQLAlchemy engine and session factory.

The API, the CLI jobs and Alembic all use one ``postgresql+psycopg://`` URL.
Each request or job works on a single ``AsyncSession`` that owns one
transaction: a cascade's batch UPDATEs commit together, and identifier
retries nest their SAVEPOINTs inside it.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

APPLICATION_NAME = "workhive"


def create_engine(database_url: str, **kwargs: object) -> AsyncEngine:
    """Create the async engine.

    The pool is small and kept warm since the gate resolves a membership on
    nearly every request.  Connections report ``application_name=workhive``
    so they can be told apart in ``pg_stat_activity``.  Any default can be
    overridden via *kwargs*.
    """
    defaults = {
        "echo": False,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": {"application_name": APPLICATION_NAME},
    }
    defaults.update(kwargs)  # type: ignore[arg-type]
    return create_async_engine(database_url, **defaults)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to *engine*.

    ``expire_on_commit=False``: routers serialize the rows a manager returns
    after it has committed, and async sessions cannot lazy-load.
    """
    return async_sessionmaker(engine, expire_on_commit=False)
