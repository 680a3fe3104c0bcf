"""Password hashing, verification and the password strength rule.

Hashes are bcrypt.  bcrypt only looks at the first 72 bytes of its input, so
longer passwords are rejected up front instead of being silently truncated.
Hashing is CPU-bound and runs in a worker thread.
"""

from __future__ import annotations

import re
import secrets
from functools import partial

import bcrypt
from anyio import to_thread

from workhive.server.errors import BadRequestError

MIN_LENGTH = 8
MAX_BYTES = 72
SPECIAL_CHARACTERS = "@$!%*?&#"

_CLASSES = (
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"\d"), "a number"),
    (re.compile(f"[{re.escape(SPECIAL_CHARACTERS)}]"), f"a special character ({SPECIAL_CHARACTERS})"),
)

OTP_DIGITS = 6
OTP_ROUNDS = 4


def validate_password(password: str) -> None:
    """Raise ``BadRequestError`` unless *password* is acceptable."""
    if len(password) < MIN_LENGTH:
        msg = f"Password must be at least {MIN_LENGTH} characters"
        raise BadRequestError(msg)
    if len(password.encode("utf-8")) > MAX_BYTES:
        msg = f"Password must not exceed {MAX_BYTES} bytes"
        raise BadRequestError(msg)
    missing = [label for pattern, label in _CLASSES if not pattern.search(password)]
    if missing:
        msg = "Password must contain " + ", ".join(missing)
        raise BadRequestError(msg)


def _hash(secret: str, rounds: int) -> str:
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def _check(secret: str, hashed: str) -> bool:
    encoded = secret.encode("utf-8")
    if len(encoded) > MAX_BYTES:
        return False
    return bcrypt.checkpw(encoded, hashed.encode("ascii"))


async def hash_password(password: str, *, rounds: int = 12) -> str:
    return await to_thread.run_sync(partial(_hash, password, rounds))


async def verify_password(password: str, hashed: str | None) -> bool:
    """``False`` for a wrong password and for accounts without one."""
    if not hashed:
        return False
    return await to_thread.run_sync(partial(_check, password, hashed))


def generate_otp() -> str:
    """Zero-padded numeric one-time code for password resets."""
    return f"{secrets.randbelow(10**OTP_DIGITS):0{OTP_DIGITS}d}"


async def hash_otp(otp: str) -> str:
    return await hash_password(otp, rounds=OTP_ROUNDS)
