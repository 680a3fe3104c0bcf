"""Identity store and credential lifecycle.

Users are referenced by every other entity but never mutated by the
workspace logic.  Accounts come from self-registration or the CLI; the
password-related operations here raise typed errors with the messages the
credential endpoints return.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workhive.server.auth import RefreshClaims
from workhive.server.db.tables import PasswordReset, User
from workhive.server.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, UnauthenticatedError
from workhive.server.models.api import UserRegister
from workhive.server.passwords import generate_otp, hash_otp, hash_password, validate_password, verify_password

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_RESET_CODE = "Invalid or expired reset code"


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Return the non-deleted user with *user_id*, or ``None``."""
    user = await db.get(User, user_id)
    if user is None or user.deleted_at is not None:
        return None
    return user


async def find_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User).where(User.email == normalize_email(email), User.deleted_at.is_(None)),
    )
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    first_name: str,
    last_name: str,
    is_super_admin: bool = False,
    password_hash: str | None = None,
) -> User:
    """Create a user.  Raises ``ConflictError`` if the email is taken."""
    user = User(
        user_id=uuid.uuid4().hex,
        email=normalize_email(email),
        first_name=first_name,
        last_name=last_name,
        is_super_admin=is_super_admin,
        password_hash=password_hash,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        msg = f"A user with email '{user.email}' already exists"
        raise ConflictError(msg) from None
    await db.refresh(user)
    logger.info("User created: {} ({})", user.user_id, user.email)
    return user


async def set_super_admin(db: AsyncSession, email: str, *, enabled: bool = True) -> User:
    user = await find_user_by_email(db, email)
    if user is None:
        msg = f"User '{email}' not found"
        raise NotFoundError(msg)
    user.is_super_admin = enabled
    await db.commit()
    await db.refresh(user)
    logger.info("User {} super-admin flag set to {}", user.email, enabled)
    return user


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def _ensure_active(user: User) -> None:
    if not user.is_active:
        msg = "Your account has been deactivated"
        raise ForbiddenError(msg)


async def _store_password(db: AsyncSession, user: User, password: str, *, rounds: int) -> None:
    """Replace the password and revoke every refresh token issued so far."""
    user.password_hash = await hash_password(password, rounds=rounds)
    user.token_version += 1
    await db.commit()
    await db.refresh(user)


async def register_user(db: AsyncSession, body: UserRegister, *, rounds: int = 12) -> User:
    """Self-registration.  Raises ``BadRequestError`` for a weak password."""
    validate_password(body.password)
    if await find_user_by_email(db, body.email) is not None:
        msg = "User with this email already exists"
        raise ConflictError(msg)
    return await create_user(
        db,
        email=body.email,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        password_hash=await hash_password(body.password, rounds=rounds),
    )


async def login(db: AsyncSession, email: str, password: str) -> User:
    """Check credentials and stamp ``last_login_at``.

    Unknown email and wrong password are indistinguishable to the caller.
    """
    user = await find_user_by_email(db, email)
    if user is None or not await verify_password(password, user.password_hash):
        raise UnauthenticatedError(INVALID_CREDENTIALS)
    _ensure_active(user)

    user.last_login_at = datetime.now(UTC)
    await db.commit()
    await db.refresh(user)
    logger.info("User logged in: {}", user.user_id)
    return user


async def user_for_refresh(db: AsyncSession, claims: RefreshClaims) -> User:
    """The user a refresh token belongs to, if the token is still honoured."""
    user = await find_user_by_id(db, claims.user_id)
    if user is None:
        msg = "User not found"
        raise UnauthenticatedError(msg)
    _ensure_active(user)
    if claims.version != user.token_version:
        msg = "Refresh token has been revoked. Please login again"
        raise UnauthenticatedError(msg)
    return user


async def revoke_tokens(db: AsyncSession, user: User) -> None:
    """Log out everywhere: refresh tokens issued before now stop working."""
    user.token_version += 1
    await db.commit()
    await db.refresh(user)
    logger.info("Refresh tokens revoked for {}", user.user_id)


async def change_password(
    db: AsyncSession, user: User, current_password: str, new_password: str, *, rounds: int = 12
) -> User:
    if not await verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise BadRequestError(msg)
    if current_password == new_password:
        msg = "New password must be different from the current password"
        raise BadRequestError(msg)
    validate_password(new_password)
    await _store_password(db, user, new_password, rounds=rounds)
    logger.info("Password changed for {}", user.user_id)
    return user


async def set_password(db: AsyncSession, email: str, password: str, *, rounds: int = 12) -> User:
    """Operator path: set a password without knowing the old one."""
    user = await find_user_by_email(db, email)
    if user is None:
        msg = f"User '{email}' not found"
        raise NotFoundError(msg)
    validate_password(password)
    await _store_password(db, user, password, rounds=rounds)
    logger.info("Password set for {}", user.user_id)
    return user


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


async def request_password_reset(db: AsyncSession, email: str, *, ttl: timedelta) -> tuple[User, str] | None:
    """Issue a one-time code for *email*.

    Returns the user and the plain code to mail, or ``None`` when there is no
    active account (the caller answers the same way in both cases).  Earlier
    unused codes for the user are spent.
    """
    user = await find_user_by_email(db, email)
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or inactive email")
        return None

    now = datetime.now(UTC)
    await db.execute(
        update(PasswordReset)
        .where(PasswordReset.user_id == user.user_id, PasswordReset.used_at.is_(None))
        .values(used_at=now)
        .execution_options(synchronize_session=False)
    )
    otp = generate_otp()
    db.add(
        PasswordReset(
            reset_id=uuid.uuid4().hex,
            user_id=user.user_id,
            otp_hash=await hash_otp(otp),
            expires_at=now + ttl,
        )
    )
    await db.commit()
    logger.info("Password reset code issued for {}", user.user_id)
    return user, otp


async def reset_password(
    db: AsyncSession,
    email: str,
    code: str,
    new_password: str,
    *,
    max_attempts: int = 5,
    rounds: int = 12,
) -> User:
    """Set a new password using a mailed code.

    A wrong code counts against the request; after *max_attempts* wrong codes
    the request is refused even with the right one.
    """
    validate_password(new_password)
    user = await find_user_by_email(db, email)
    if user is None:
        raise BadRequestError(INVALID_RESET_CODE)

    now = datetime.now(UTC)
    result = await db.execute(
        select(PasswordReset)
        .where(
            PasswordReset.user_id == user.user_id,
            PasswordReset.used_at.is_(None),
            PasswordReset.expires_at > now,
        )
        .order_by(PasswordReset.expires_at.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    reset = result.scalar_one_or_none()
    if reset is None:
        raise BadRequestError(INVALID_RESET_CODE)
    if reset.attempts >= max_attempts:
        msg = "Too many incorrect attempts. Please request a new reset code"
        raise BadRequestError(msg)

    if not await verify_password(code, reset.otp_hash):
        reset.attempts += 1
        await db.commit()
        logger.warning("Wrong password reset code for {} (attempt {}/{})", user.user_id, reset.attempts, max_attempts)
        raise BadRequestError(INVALID_RESET_CODE)

    reset.used_at = now
    await _store_password(db, user, new_password, rounds=rounds)
    logger.info("Password reset completed for {}", user.user_id)
    return user
