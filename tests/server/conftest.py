"""Shared fixtures for server tests."""

from __future__ import annotations

import itertools
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.app import app
from workhive.server.auth import issue_access_token
from workhive.server.db.tables import User, Workspace
from workhive.server.deps import get_db
from workhive.server.managers.members import invite_member
from workhive.server.managers.users import create_user
from workhive.server.managers.workspaces import create_workspace
from workhive.server.models.api import WorkspaceCreate
from workhive.server.models.enums import WorkspaceRole
from workhive.server.notify import Notification
from workhive.server.ratelimit import build_rate_limiter
from workhive.server.settings import HiveSettings, get_settings
from workhive.server.storage import LocalBlobStore

UserFactory = Callable[..., Awaitable[User]]


class RecordingNotifier:
    """Collects notifications instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)


@pytest.fixture
def settings(tmp_path: Path) -> HiveSettings:
    return HiveSettings(
        jwt_secret="test-secret",
        data_root=str(tmp_path),
        max_upload_bytes=1024,
        password_hash_rounds=4,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_user(db_session: AsyncSession) -> UserFactory:
    """Factory creating users with unique emails."""
    counter = itertools.count(1)

    async def factory(name: str = "user", *, super_admin: bool = False) -> User:
        return await create_user(
            db_session,
            email=f"{name}{next(counter)}@example.com",
            first_name=name.title(),
            last_name="Tester",
            is_super_admin=super_admin,
        )

    return factory


@pytest.fixture
def auth(settings: HiveSettings) -> Callable[[User], dict[str, str]]:
    """Build bearer headers for a user."""

    def headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_access_token(user.user_id, settings)}"}

    return headers


@dataclass
class Team:
    workspace: Workspace
    owner: User
    admin: User
    member: User
    viewer: User


@pytest.fixture
async def team(db_session: AsyncSession, make_user: UserFactory) -> Team:
    """A workspace with one user per role."""
    owner = await make_user("owner")
    admin = await make_user("admin")
    member = await make_user("member")
    viewer = await make_user("viewer")

    workspace, owner_membership = await create_workspace(db_session, WorkspaceCreate(name="Acme Corp"), owner)
    await invite_member(db_session, workspace, owner_membership, email=admin.email, role=WorkspaceRole.ADMIN)
    await invite_member(db_session, workspace, owner_membership, email=member.email, role=WorkspaceRole.MEMBER)
    await invite_member(db_session, workspace, owner_membership, email=viewer.email, role=WorkspaceRole.VIEWER)
    return Team(workspace=workspace, owner=owner, admin=admin, member=member, viewer=viewer)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    settings: HiveSettings,
    notifier: RecordingNotifier,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with a test DB session.

    Overrides ``get_db`` so every request uses the savepoint-isolated
    ``db_session`` fixture from the root conftest.  The app lifespan does
    NOT run under ``ASGITransport``, so state fields are pre-set here.
    """

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_settings] = lambda: settings

    # Pre-set state fields (lifespan does not run under ASGITransport).
    app.state.db_engine = None
    app.state.db_session_factory = None
    app.state.blob_store = LocalBlobStore(settings.data_root)
    app.state.notifier = notifier
    app.state.rate_limiter = build_rate_limiter(settings)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
