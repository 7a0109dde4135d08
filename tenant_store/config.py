"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - validate_backend() raises ConfigurationError listing every problem at once

Design Decisions:
    - TENANT_STORE_ prefix: avoids clashes with the host application's env
    - Defaults provided for all non-secret settings
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tenant_store.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="TENANT_STORE_", case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug_mode: bool = False

    # Remote store
    store_backend: Literal["rest", "sql"] = "rest"
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    request_timeout_seconds: float = 30.0

    database_url: str = "postgresql+asyncpg://tenant:tenant@db:5432/tenant"
    database_pool_size: int = 10
    database_max_overflow: int = 5

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Tenancy
    tenant_cache_ttl_seconds: float = 300.0
    health_check_table: str = "departments"
    profiles_table: str = "user_profiles"
    profile_user_column: str = "user_id"

    # Quotas
    default_plan: str = "free"

    # Retry
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 60_000

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def validate_backend(self) -> None:
        """Check the settings the selected store backend needs."""
        problems = []
        if self.store_backend == "rest":
            if not self.supabase_url:
                problems.append("TENANT_STORE_SUPABASE_URL is required")
            elif not self.supabase_url.startswith("https://"):
                problems.append("TENANT_STORE_SUPABASE_URL must start with https://")
            if not self.supabase_anon_key:
                problems.append("TENANT_STORE_SUPABASE_ANON_KEY is required")
        if self.retry_max_attempts < 1:
            problems.append("TENANT_STORE_RETRY_MAX_ATTEMPTS must be at least 1")
        if problems:
            raise ConfigurationError(problems)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
