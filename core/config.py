"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the account service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, cache_url -> CACHE_URL).

  @model_validator(mode="after"): DEBUG-conditional key policy. Dev mode
      generates missing keys with a warning, production mode refuses to start.

Per-entity knobs (page limit, cache TTL) are plain fields here and are handed
to each repository at construction time. Nothing below the transport layer
calls get_settings() for them.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
cache/, db/, repository/, or services/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("accountsvc.config")

DEFAULT_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_PAGE_LIMIT = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    aes_secret: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///accountsvc.db"
    # redis://host:port/db selects Redis; sqlite:///path or memory:// selects
    # the local SQLite cache (single process only).
    cache_url: str = "redis://localhost:6379/0"

    # ------------------------------------------------------------------
    # Token issuance
    # ------------------------------------------------------------------

    token_timeout_seconds: int = 3600
    oauth2_rate_limit: str = "10/minute"
    # Scope allowed to manage roles, list accounts and hard-delete rows.
    admin_scope: str = "sup"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # JSON lists in the environment, e.g. ALLOWED_HOSTS='["api.example.com"]'
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Per-entity repository tuning
    # ------------------------------------------------------------------

    account_page_limit: int = DEFAULT_PAGE_LIMIT
    account_cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    role_page_limit: int = DEFAULT_PAGE_LIMIT
    role_cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    account_role_page_limit: int = DEFAULT_PAGE_LIMIT
    account_role_cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_keys(self) -> "Settings":
        """Enforce the key policy for SECRET_KEY and AES_SECRET.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens and encrypted client secrets will not survive restart.

        Production mode: refuse to start if either key is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        for field in ("secret_key", "aes_secret"):
            value = getattr(self, field)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        f"Set {field.upper()} in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, field, value)
                logger.warning("WARNING: Using auto-generated %s.", field.upper())
            if len(value) < 32:
                raise ValueError(f"{field.upper()} must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
