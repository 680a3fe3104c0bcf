"""Alembic environment for the workhive schema.

The URL comes from ``WORKHIVE_DATABASE_URL`` through :func:`get_settings`,
so ``workhive db upgrade`` and the server always target the same database.
The partial unique indexes on slugs, memberships and label names are declared
on the ORM tables with ``postgresql_where``; autogenerate compares them like
any other index.
"""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from loguru import logger
from sqlalchemy import create_engine, pool

from workhive.server.db.tables import Base
from workhive.server.settings import get_settings

config = context.config
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

settings = get_settings()
if not settings.database_url:
    msg = "WORKHIVE_DATABASE_URL is not set. Cannot run migrations."
    raise RuntimeError(msg)


def get_url() -> str:
    """The configured URL, forced onto the psycopg3 dialect."""
    url = settings.database_url
    if url is None:  # pragma: no cover
        msg = "database_url is None"
        raise RuntimeError(msg)
    return url.replace("postgresql+asyncpg://", "postgresql+psycopg://")


def include_object(obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any) -> bool:
    """Ignore tables present in the database but unknown to ``Base.metadata``."""
    return not (type_ == "table" and reflected and compare_to is None)


def skip_empty_revision(_context: Any, _revision: Any, directives: list[Any]) -> None:
    """Do not write a revision file when autogenerate found no schema change.

    ``workhive db migrate`` always autogenerates, so an empty upgrade means the
    models and the database already agree.
    """
    script = directives[0]
    if script.upgrade_ops is not None and script.upgrade_ops.is_empty():
        directives[:] = []
        logger.info("No schema changes detected, no migration written")


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a dedicated, unpooled connection."""
    connectable = create_engine(
        get_url(),
        poolclass=pool.NullPool,
        connect_args={"application_name": "workhive-migrations"},
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            process_revision_directives=skip_empty_revision,
            compare_type=True,
            compare_server_default=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
