"""Application settings loaded from environment variables.

Environment Configuration:
    FOLIO_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    FOLIO_INTERNAL_SECRET: Internal API secret (required in staging/prod)

Auth Configuration (required in all environments):
    SUPABASE_JWKS_URL: Full URL to Supabase JWKS endpoint
    SUPABASE_ISSUER: Expected JWT issuer (trailing slash stripped)
    SUPABASE_AUDIENCES: Comma-separated list of allowed audiences

Database Configuration:
    DB_POOL_SIZE: Connection pool size
    DB_LOCK_TIMEOUT_MS: Maximum wait for a row lock before the statement fails

TOC Engine Configuration:
    TOC_PAGE_SIZE: Rows fetched per page when reading large trees
    TOC_ID_CHUNK_SIZE: Maximum ids per IN-list when fetching by id batch
    TOC_MAX_DEPTH: Depth limit for tree walks (guards against parent cycles)

Logging:
    LOG_JSON: Emit JSON logs (true) or console-friendly logs (false)
    LOG_LEVEL: Root log level (DEBUG, INFO, WARNING, ...)
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - SUPABASE_JWKS_URL, SUPABASE_ISSUER, SUPABASE_AUDIENCES are required in all environments
    - FOLIO_INTERNAL_SECRET is required in staging and prod only
    - TOC limits and database pool/lock settings must be positive
    """

    folio_env: Environment = Field(default=Environment.LOCAL, alias="FOLIO_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    folio_internal_secret: str | None = Field(default=None, alias="FOLIO_INTERNAL_SECRET")

    # Supabase auth settings (required in all environments)
    supabase_jwks_url: str | None = Field(default=None, alias="SUPABASE_JWKS_URL")
    supabase_issuer: str | None = Field(default=None, alias="SUPABASE_ISSUER")
    supabase_audiences: str | None = Field(default=None, alias="SUPABASE_AUDIENCES")

    # Test auth settings (optional, with defaults)
    test_token_issuer: str = Field(default="test-issuer", alias="TEST_TOKEN_ISSUER")
    test_token_audiences: str = Field(default="test-audience", alias="TEST_TOKEN_AUDIENCES")

    # Database pool and row-lock settings
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    db_lock_timeout_ms: int = Field(default=5000, alias="DB_LOCK_TIMEOUT_MS")

    # TOC engine limits
    toc_page_size: int = Field(default=1000, alias="TOC_PAGE_SIZE")
    toc_id_chunk_size: int = Field(default=200, alias="TOC_ID_CHUNK_SIZE")
    toc_max_depth: int = Field(default=32, alias="TOC_MAX_DEPTH")

    log_json: bool = Field(default=True, alias="LOG_JSON")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for all environments."""
        # Supabase auth settings are required in all environments
        missing_auth = []
        if not self.supabase_jwks_url:
            missing_auth.append("SUPABASE_JWKS_URL")
        if not self.supabase_issuer:
            missing_auth.append("SUPABASE_ISSUER")
        if not self.supabase_audiences:
            missing_auth.append("SUPABASE_AUDIENCES")

        if missing_auth:
            raise ValueError(
                f"Missing required Supabase auth settings: {', '.join(missing_auth)}. "
                "Set these environment variables or add them to .env."
            )

        # FOLIO_INTERNAL_SECRET is required only in staging/prod
        if self.folio_env in (Environment.STAGING, Environment.PROD):
            if not self.folio_internal_secret:
                raise ValueError(
                    f"FOLIO_INTERNAL_SECRET is required for FOLIO_ENV={self.folio_env.value}"
                )

        for name in (
            "toc_page_size",
            "toc_id_chunk_size",
            "toc_max_depth",
            "db_pool_size",
            "db_lock_timeout_ms",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name.upper()} must be a positive integer")

        return self

    @property
    def requires_internal_header(self) -> bool:
        """Whether requests must include the internal secret header."""
        return self.folio_env in (Environment.STAGING, Environment.PROD)

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.supabase_audiences:
            return [a.strip() for a in self.supabase_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.supabase_issuer:
            return self.supabase_issuer.rstrip("/")
        return None


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
