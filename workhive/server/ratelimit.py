"""In-process sliding-window rate limits for the credential endpoints.

Every request to a limited endpoint counts against its client address,
whether it succeeds or not.  State lives in the server process, so limits are
per worker and reset on restart.
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from loguru import logger

from workhive.server.errors import RateLimitedError
from workhive.server.settings import HiveSettings

LOGIN = "login"
REGISTER = "register"
PASSWORD_RESET = "password-reset"


@dataclass(frozen=True)
class Rule:
    limit: int
    window_seconds: float
    message: str


class RateLimiter:
    def __init__(self, rules: Mapping[str, Rule], *, clock: Callable[[], float] = time.monotonic) -> None:
        self.rules = dict(rules)
        self._clock = clock
        self._hits: defaultdict[tuple[str, str], deque[float]] = defaultdict(deque)

    def hit(self, bucket: str, client: str) -> None:
        """Count one request from *client*; raise ``RateLimitedError`` past the limit."""
        rule = self.rules[bucket]
        now = self._clock()
        hits = self._hits[(bucket, client)]
        while hits and now - hits[0] >= rule.window_seconds:
            hits.popleft()
        if len(hits) >= rule.limit:
            logger.warning("Rate limit hit: {} from {} ({} in {}s)", bucket, client, rule.limit, rule.window_seconds)
            raise RateLimitedError(rule.message)
        hits.append(now)


def build_rate_limiter(settings: HiveSettings) -> RateLimiter:
    return RateLimiter(
        {
            LOGIN: Rule(
                settings.login_rate_limit,
                settings.login_rate_window_seconds,
                "Too many login attempts. Please try again later",
            ),
            REGISTER: Rule(
                settings.register_rate_limit,
                settings.register_rate_window_seconds,
                "Too many accounts created. Please try again later",
            ),
            PASSWORD_RESET: Rule(
                settings.password_reset_rate_limit,
                settings.password_reset_rate_window_seconds,
                "Too many password reset requests. Please try again later",
            ),
        }
    )
