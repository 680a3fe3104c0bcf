from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

T = TypeVar("T")


@click.group()
def main() -> None:
    """Workhive - multi-tenant project management service."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from WORKHIVE_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from WORKHIVE_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the API server."""
    import uvicorn

    from workhive.server.settings import get_settings

    settings = get_settings()

    uvicorn.run(
        "workhive.server.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


def _run_with_db(fn: Callable[..., Awaitable[T]]) -> T:
    """Run ``fn(db)`` with a fresh session, then dispose the engine."""
    from workhive.server.db.engine import create_engine, create_session_factory
    from workhive.server.log import setup_logging
    from workhive.server.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level, log_sql=settings.log_sql)
    if not settings.database_url:
        msg = "WORKHIVE_DATABASE_URL is not set."
        raise click.ClickException(msg)

    async def runner() -> T:
        engine = create_engine(settings.database_url)
        try:
            async with create_session_factory(engine)() as db:
                return await fn(db)
        finally:
            await engine.dispose()

    return asyncio.run(runner())


def _click_error(exc: Exception) -> click.ClickException:
    return click.ClickException(getattr(exc, "message", str(exc)))


# ---------------------------------------------------------------------------
# Database management
# ---------------------------------------------------------------------------


def _alembic_config():
    """Build an Alembic Config from the package's alembic.ini.

    Both alembic.ini and the alembic/ directory live inside the package,
    so this works whether running from source or from an installed package.
    """
    from pathlib import Path

    from alembic.config import Config

    ini_path = Path(__file__).parent / "server" / "alembic.ini"
    cfg = Config(str(ini_path))
    return cfg


@main.group()
def db() -> None:
    """Database migration and management commands."""


@db.command()
@click.option("--revision", default="head", help="Target revision (default: head).")
def upgrade(revision: str) -> None:
    """Run database migrations forward."""
    from alembic import command

    command.upgrade(_alembic_config(), revision)
    click.echo(f"Database upgraded to {revision}.")


@db.command()
@click.option("--revision", default="-1", help="Target revision (default: -1, one step back).")
def downgrade(revision: str) -> None:
    """Roll back database migrations."""
    from alembic import command

    command.downgrade(_alembic_config(), revision)
    click.echo(f"Database downgraded to {revision}.")


@db.command()
@click.argument("message")
def migrate(message: str) -> None:
    """Autogenerate a new migration from model changes."""
    from alembic import command

    command.revision(_alembic_config(), message=message, autogenerate=True)
    click.echo(f"Migration generated: {message}")


@db.command()
def current() -> None:
    """Show current database revision."""
    from alembic import command

    command.current(_alembic_config(), verbose=True)


@db.command()
def history() -> None:
    """Show migration history."""
    from alembic import command

    command.history(_alembic_config(), verbose=True)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@main.group()
def user() -> None:
    """User account commands."""


@user.command("create")
@click.argument("email")
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option("--super-admin", is_flag=True, default=False, help="Grant platform-wide super admin rights.")
def create_user(email: str, first_name: str, last_name: str, super_admin: bool) -> None:
    """Register a user."""
    from workhive.server.errors import HiveError
    from workhive.server.managers.users import create_user as create

    try:
        created = _run_with_db(
            lambda db: create(db, email=email, first_name=first_name, last_name=last_name, is_super_admin=super_admin)
        )
    except HiveError as exc:
        raise _click_error(exc) from None
    click.echo(f"User created: {created.user_id} ({created.email})")


@user.command("token")
@click.argument("email")
def issue_token(email: str) -> None:
    """Print a bearer token for EMAIL."""
    from workhive.server.auth import issue_access_token
    from workhive.server.managers.users import find_user_by_email
    from workhive.server.settings import get_settings

    settings = get_settings()
    if settings.jwt_secret is None:
        msg = "WORKHIVE_JWT_SECRET must be set to issue tokens the server will accept."
        raise click.ClickException(msg)

    found = _run_with_db(lambda db: find_user_by_email(db, email))
    if found is None or not found.is_active:
        msg = f"No active user with email '{email}'."
        raise click.ClickException(msg)
    click.echo(issue_access_token(found.user_id, settings))


@user.command("set-password")
@click.argument("email")
@click.password_option("--password", help="New password (prompted when omitted).")
def set_password(email: str, password: str) -> None:
    """Set the login password for EMAIL."""
    from workhive.server.errors import HiveError
    from workhive.server.managers.users import set_password as store
    from workhive.server.settings import get_settings

    rounds = get_settings().password_hash_rounds
    try:
        updated = _run_with_db(lambda db: store(db, email, password, rounds=rounds))
    except HiveError as exc:
        raise _click_error(exc) from None
    click.echo(f"Password set for {updated.email}")


@user.command("promote")
@click.argument("email")
@click.option("--revoke", is_flag=True, default=False, help="Remove the super admin flag instead.")
def promote(email: str, revoke: bool) -> None:
    """Grant (or revoke) super admin rights."""
    from workhive.server.errors import HiveError
    from workhive.server.managers.users import set_super_admin

    try:
        updated = _run_with_db(lambda db: set_super_admin(db, email, enabled=not revoke))
    except HiveError as exc:
        raise _click_error(exc) from None
    click.echo(f"{updated.email}: super admin = {updated.is_super_admin}")


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


@main.group()
def audit() -> None:
    """Soft-delete audit and cascade repair."""


@audit.command("soft-deletes")
def soft_deletes() -> None:
    """Count soft-deleted rows per table."""
    from workhive.server.jobs import audit_soft_deletes

    counts = _run_with_db(audit_soft_deletes)
    for table, count in counts.items():
        click.echo(f"{table:<20} {count}")
    click.echo(f"{'total':<20} {sum(counts.values())}")


@audit.command("reconcile")
@click.option("--apply", is_flag=True, default=False, help="Re-run incomplete cascades instead of only reporting.")
def reconcile(apply: bool) -> None:
    """Find deleted roots whose dependents are still live."""
    from workhive.server.jobs import reconcile_cascades

    leftovers = _run_with_db(lambda db: reconcile_cascades(db, apply=apply))
    if not leftovers:
        click.echo("No incomplete cascades.")
        return
    for leftover in leftovers:
        click.echo(
            f"{leftover.kind:<10} {leftover.root_id}  deleted_at={leftover.deleted_at.isoformat()}"
            f"  live_dependents={leftover.live_dependents}"
        )
    click.echo(f"{len(leftovers)} incomplete cascade(s) {'repaired' if apply else 'found'}.")


if __name__ == "__main__":
    main()
