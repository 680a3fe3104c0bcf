"""Typed domain errors.

Managers and the authorization gate raise these; the HTTP layer turns them
into a stable ``(kind, message)`` JSON body via :func:`install_error_handlers`.
Each error also inherits from the closest builtin so callers can keep
catching ``LookupError`` / ``ValueError`` where that reads more naturally.
"""

from __future__ import annotations

from typing import ClassVar

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class HiveError(Exception):
    """Base class for every recoverable, caller-visible failure."""

    kind: ClassVar[str] = "error"
    status_code: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind, "message": self.message}


class NotFoundError(HiveError, LookupError):
    """Workspace / project / task / member absent or soft-deleted."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(HiveError):
    """Authenticated, but lacking the role or ownership the action needs."""

    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class UnauthenticatedError(HiveError):
    kind = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class ConflictError(HiveError, ValueError):
    """A unique index rejected the write (slug, key, ticket, membership)."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class BadRequestError(HiveError, ValueError):
    """Well-formed input that breaks a business rule (e.g. role=owner)."""

    kind = "bad_request"
    status_code = status.HTTP_400_BAD_REQUEST


class RateLimitedError(HiveError):
    """Too many login, registration or password-reset requests from one client."""

    kind = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class GenerationExhaustedError(HiveError, RuntimeError):
    """The slug/key collision search ran past its bound.

    Indicates a data anomaly, never retried automatically.
    """

    kind = "generation_exhausted"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def _handle_hive_error(_request: Request, exc: HiveError) -> JSONResponse:
    if isinstance(exc, GenerationExhaustedError):
        logger.error("Identifier generation exhausted: {}", exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def install_error_handlers(app: FastAPI) -> None:
    """Register the ``HiveError`` -> JSON response translation on *app*."""
    app.add_exception_handler(HiveError, _handle_hive_error)
