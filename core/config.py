"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Gatekeeper happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit injection: auth/ never calls get_settings() itself. api/main.py
      reads the settings at import (middleware) and in the lifespan, and hands
      the relevant values to CredentialIssuer (via IssuerConfig) and to the
      bootstrap helpers. main.py does the same for the CLI.
      Tests build their own IssuerConfig without touching the environment.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies
  on key entropy -- a short key weakens every issued session token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a
  hard startup failure. Debug mode generates a random key with a warning.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or products/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatekeeper.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'gatekeeper.db'}"


class Settings(BaseSettings):
    """Gatekeeper settings from the environment, then .env, then defaults.

    Every field has a default, so tests can build Settings(debug=True, ...)
    directly without any environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions and password reset
    # ------------------------------------------------------------------

    token_expire_seconds: int = 8 * 3600
    reset_token_expire_seconds: int = 3600
    # Base URL of the client app; reset links point at {frontend_url}/reset-password/{token}
    frontend_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Outbound mail (empty smtp_host means "log instead of send")
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from: str = "no-reply@gatekeeper.local"

    # ------------------------------------------------------------------
    # Bootstrap master admin
    # ------------------------------------------------------------------

    master_admin_username: str = "admin"
    master_admin_email: str = "admin@system.com"
    master_admin_password: str = "admin123"

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    # JSON arrays in the environment, e.g. ALLOWED_HOSTS='["api.example.com"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """SECRET_KEY rules.

        DEBUG=true with no key: a random one is generated, so every restart
            logs all sessions out.
        Otherwise a missing key stops startup.
        Any key under 32 characters is refused.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "SECRET_KEY not set; generated a throwaway key. Issued tokens die with this process."
                )
            else:
                raise ValueError(
                    "SECRET_KEY must be set when DEBUG is off (environment or .env). "
                    "Set DEBUG=true to run with a generated development key."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Cached Settings instance. Call get_settings.cache_clear() after changing the environment."""
    return Settings()
