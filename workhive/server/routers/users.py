"""Account endpoints: registration, login, token refresh and password management.

Login and refresh answer with a fresh access/refresh token pair.  Changing or
resetting a password and logging out revoke every refresh token issued
before; access tokens stay valid until they expire.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, status

from workhive.server.auth import decode_refresh_token, issue_token_pair
from workhive.server.db.tables import User
from workhive.server.deps import DbSession, NotifierDep, Settings, rate_limited
from workhive.server.gate import CurrentUser
from workhive.server.managers import users as manager
from workhive.server.models.api import (
    CurrentUserResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    PasswordChange,
    RefreshRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserRegister,
)
from workhive.server.notify import deliver, password_reset_code
from workhive.server.ratelimit import LOGIN, PASSWORD_RESET, REGISTER
from workhive.server.settings import HiveSettings

router = APIRouter(prefix="/users", tags=["users"])

RESET_REQUESTED = "If an account with that email exists, a reset code has been sent"


def token_response(user: User, settings: HiveSettings) -> TokenResponse:
    pair = issue_token_pair(user.user_id, settings, version=user.token_version)
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
        user=CurrentUserResponse.model_validate(user),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[rate_limited(REGISTER)],
)
async def register(body: UserRegister, db: DbSession, settings: Settings) -> TokenResponse:
    """Create an account and sign it in."""
    user = await manager.register_user(db, body, rounds=settings.password_hash_rounds)
    return token_response(user, settings)


@router.post("/login", response_model=TokenResponse, dependencies=[rate_limited(LOGIN)])
async def login(body: LoginRequest, db: DbSession, settings: Settings) -> TokenResponse:
    user = await manager.login(db, body.email, body.password)
    return token_response(user, settings)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: DbSession, settings: Settings) -> TokenResponse:
    """Trade a refresh token for a new token pair."""
    claims = decode_refresh_token(body.refresh_token, settings)
    user = await manager.user_for_refresh(db, claims)
    return token_response(user, settings)


@router.post("/logout", response_model=MessageResponse)
async def logout(db: DbSession, user: CurrentUser) -> MessageResponse:
    await manager.revoke_tokens(db, user)
    return MessageResponse(message="Logged out successfully")


@router.post("/change-password", response_model=TokenResponse)
async def change_password(body: PasswordChange, db: DbSession, settings: Settings, user: CurrentUser) -> TokenResponse:
    """Change the caller's password.  Other sessions must log in again."""
    user = await manager.change_password(
        db, user, body.current_password, body.new_password, rounds=settings.password_hash_rounds
    )
    return token_response(user, settings)


@router.post("/forgot-password", response_model=MessageResponse, dependencies=[rate_limited(PASSWORD_RESET)])
async def forgot_password(
    body: ForgotPasswordRequest,
    db: DbSession,
    settings: Settings,
    notifier: NotifierDep,
    background: BackgroundTasks,
) -> MessageResponse:
    """Mail a one-time reset code.  The answer does not reveal whether the account exists."""
    issued = await manager.request_password_reset(
        db, body.email, ttl=timedelta(minutes=settings.password_reset_ttl_minutes)
    )
    if issued is not None:
        user, code = issued
        background.add_task(
            deliver, notifier, password_reset_code(user, code, settings.password_reset_ttl_minutes)
        )
    return MessageResponse(message=RESET_REQUESTED)


@router.post("/reset-password", response_model=MessageResponse, dependencies=[rate_limited(PASSWORD_RESET)])
async def reset_password(body: ResetPasswordRequest, db: DbSession, settings: Settings) -> MessageResponse:
    await manager.reset_password(
        db,
        body.email,
        body.code,
        body.new_password,
        max_attempts=settings.password_reset_max_attempts,
        rounds=settings.password_hash_rounds,
    )
    return MessageResponse(message="Password has been reset. Please login with your new password")


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(user: CurrentUser) -> User:
    return user
