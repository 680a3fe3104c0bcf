"""Bearer credential issue and verification.

Access tokens are short-lived HS256 JWTs carrying the user id in ``sub``.
Refresh tokens are signed the same way with ``type=refresh`` plus the user's
token version, and are only ever accepted by the refresh endpoint.

Token checks only answer "who is calling"; workspace permissions are the
gate's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from workhive.server.errors import UnauthenticatedError
from workhive.server.settings import HiveSettings

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    """Access token lifetime in seconds."""


@dataclass(frozen=True)
class RefreshClaims:
    user_id: str
    version: int


def _encode(user_id: str, token_type: str, ttl: timedelta, settings: HiveSettings, **extra: Any) -> str:
    now = datetime.now(UTC)
    payload = {"sub": user_id, "iat": now, "exp": now + ttl, "type": token_type, **extra}
    return jwt.encode(payload, settings.resolve_jwt_secret(), algorithm=settings.jwt_algorithm)


def _decode(token: str, token_type: str, settings: HiveSettings) -> dict[str, Any]:
    label = "Refresh token" if token_type == REFRESH else "Token"
    try:
        payload = jwt.decode(
            token,
            settings.resolve_jwt_secret(),
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError(f"{label} expired. Please login again") from None
    except jwt.InvalidTokenError:
        raise UnauthenticatedError(f"Invalid {label.lower()}") from None

    if payload.get("type") != token_type:
        raise UnauthenticatedError(f"Invalid {label.lower()}")
    return payload


def issue_access_token(user_id: str, settings: HiveSettings, *, ttl: timedelta | None = None) -> str:
    if ttl is None:
        ttl = timedelta(minutes=settings.access_token_ttl_minutes)
    return _encode(user_id, ACCESS, ttl, settings)


def issue_refresh_token(
    user_id: str, settings: HiveSettings, *, version: int = 0, ttl: timedelta | None = None
) -> str:
    if ttl is None:
        ttl = timedelta(days=settings.refresh_token_ttl_days)
    return _encode(user_id, REFRESH, ttl, settings, ver=version)


def issue_token_pair(user_id: str, settings: HiveSettings, *, version: int = 0) -> TokenPair:
    return TokenPair(
        access_token=issue_access_token(user_id, settings),
        refresh_token=issue_refresh_token(user_id, settings, version=version),
        expires_in=settings.access_token_ttl_minutes * 60,
    )


def decode_access_token(token: str, settings: HiveSettings) -> str:
    """Return the user id carried by *token*.

    Raises ``UnauthenticatedError`` for expired, tampered or malformed tokens
    and for refresh tokens presented as bearer credentials.
    """
    return str(_decode(token, ACCESS, settings)["sub"])


def decode_refresh_token(token: str, settings: HiveSettings) -> RefreshClaims:
    payload = _decode(token, REFRESH, settings)
    version = payload.get("ver")
    if not isinstance(version, int):
        msg = "Invalid refresh token"
        raise UnauthenticatedError(msg)
    return RefreshClaims(user_id=str(payload["sub"]), version=version)
