"""Service configuration loaded from WORKHIVE_* environment variables."""

from __future__ import annotations

import secrets
from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class HiveSettings(BaseSettings):
    """Workhive server settings.

    All fields are read from environment variables with the ``WORKHIVE_``
    prefix.  For example, ``WORKHIVE_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKHIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_sql: bool = False
    """Log every SQL statement (cascades, reconcile runs) through loguru."""

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """PostgreSQL connection string (psycopg3).  Required for full operation."""

    # -- Auth ------------------------------------------------------------------
    jwt_secret: SecretStr | None = None
    """HMAC secret for bearer tokens.  Auto-generated at startup if empty."""

    jwt_algorithm: str = "HS256"
    access_token_ttl_minutes: int = 60
    refresh_token_ttl_days: int = 7

    password_hash_rounds: int = 12
    """bcrypt cost factor for stored passwords."""

    password_reset_ttl_minutes: int = 15
    password_reset_max_attempts: int = 5
    """Wrong codes accepted against one reset request before it is burnt."""

    # -- Rate limits (requests per client address and window) ------------------
    login_rate_limit: int = 5
    login_rate_window_seconds: int = 15 * 60
    register_rate_limit: int = 10
    register_rate_window_seconds: int = 60 * 60
    password_reset_rate_limit: int = 3
    password_reset_rate_window_seconds: int = 60 * 60

    # -- Identifiers -----------------------------------------------------------
    identifier_max_attempts: int = 999
    """Upper bound on slug/key candidates tried before giving up."""

    write_retry_attempts: int = 3
    """How many times an insert carrying a generated identifier is regenerated
    after losing a unique-index race before ``ConflictError`` is surfaced."""

    # -- Attachments -----------------------------------------------------------
    data_root: str = "./data"
    """Root directory for attachment blobs (``{data_root}/attachments``)."""

    max_upload_bytes: int = 10 * 1024 * 1024

    # -- Notifications ---------------------------------------------------------
    smtp_host: str | None = None
    """When unset, notifications are only written to the log."""

    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: SecretStr | None = None
    smtp_sender: str = "workhive@localhost"
    smtp_use_tls: bool = True

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000

    # -- Helpers ---------------------------------------------------------------

    def resolve_jwt_secret(self) -> str:
        """Return the configured secret or generate a random one.

        A generated secret only lives as long as the settings object, so
        tokens issued before a restart stop validating.
        """
        if self.jwt_secret is None:
            self.jwt_secret = SecretStr(secrets.token_urlsafe(48))
        return self.jwt_secret.get_secret_value()


@lru_cache(maxsize=1)
def get_settings() -> HiveSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return HiveSettings()
