"""Shared test fixtures: a migrated PostgreSQL and isolated workhive settings.

The unique and partial indexes the identifier and membership logic rely on
only exist in PostgreSQL, so integration tests run against a real container
managed by testcontainers-python, migrated with the packaged Alembic config.
The container is started once per run; each test gets a session whose
commits land in a savepoint that is rolled back afterwards.

Requires Docker to be available. Tests needing the container should be
marked with ``@pytest.mark.integration``.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from testcontainers.postgres import PostgresContainer

from workhive.server.settings import get_settings


def _set_env(key: str, value: str) -> None:
    """Set an env var and invalidate the settings cache."""
    os.environ[key] = value
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Session-scoped: settings that must never point at a developer's setup
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session", autouse=True)
def _workhive_env(tmp_path_factory: pytest.TempPathFactory) -> None:
    """Attachment blobs go to a temp dir and tokens use a fixed test secret."""
    _set_env("WORKHIVE_DATA_ROOT", str(tmp_path_factory.mktemp("workhive-data")))
    _set_env("WORKHIVE_JWT_SECRET", "workhive-test-secret")


# ---------------------------------------------------------------------------
# Session-scoped: container (started once, shared across all tests)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pg_container() -> Iterator[PostgresContainer]:
    """Start a PostgreSQL 17 container for the test session."""
    with PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="workhive_test",
        driver="psycopg",
    ) as pg:
        yield pg


# ---------------------------------------------------------------------------
# Session-scoped: connection URL and schema migration
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pg_url(pg_container: PostgresContainer) -> str:
    """PostgreSQL URL (psycopg3 dialect) with Alembic migrations applied."""
    url = pg_container.get_connection_url()
    _set_env("WORKHIVE_DATABASE_URL", url)

    # Apply all migrations using the packaged alembic.ini (same config as CLI).
    from alembic import command
    from alembic.config import Config

    ini_path = Path(__file__).parent.parent / "workhive" / "server" / "alembic.ini"
    cfg = Config(str(ini_path))
    command.upgrade(cfg, "head")

    return url


# ---------------------------------------------------------------------------
# Session-scoped: async engine (shared across all tests)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def async_engine(pg_url: str) -> Iterator[AsyncEngine]:
    """Session-scoped async SQLAlchemy engine."""
    engine = create_async_engine(pg_url)
    yield engine
    engine.sync_engine.dispose()


# ---------------------------------------------------------------------------
# Function-scoped: DB session with savepoint rollback for test isolation
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLAlchemy session; all changes rolled back after the test.

    Uses ``join_transaction_mode="create_savepoint"`` so that session.commit()
    inside tested code only commits a savepoint, while the outer transaction
    is rolled back at teardown -- giving each test a clean database state.
    ``expire_on_commit=False`` matches the server's session factory.
    """
    async with async_engine.connect() as conn:
        await conn.begin()
        session = AsyncSession(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
        yield session
        await session.close()
        await conn.rollback()
