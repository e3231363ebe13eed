"""Application configuration loaded from environment variables.

All configuration is via environment variables (or a local .env file).
No hardcoded URLs, ports, or credentials.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict

# disable: plain connection
# relaxed: encrypted, certificate chain is not validated
# verify: encrypted with full certificate and hostname verification
TLSMode = Literal["disable", "relaxed", "verify"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Surebet Tracker Migration")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Server
    port: int = Field(default=8000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")

    # Source database
    database_url: PostgresDsn = Field(
        ...,
        description="PostgreSQL connection string of the source database",
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, description="Threshold for slow query warnings (ms)"
    )
    db_connect_timeout: int = Field(
        default=60, description="Connection timeout in seconds"
    )
    db_command_timeout: int = Field(
        default=60, description="Command timeout in seconds"
    )
    db_tls_mode: TLSMode = Field(
        default="relaxed",
        description="TLS policy for the source database connection",
    )

    # Migration target
    migration_target_tls_mode: TLSMode = Field(
        default="relaxed",
        description="TLS policy for operator-supplied target connections",
    )
    migration_target_pool_size: int = Field(
        default=2, ge=1, description="Connection pool size for the target database"
    )
    migration_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Upper bound for a whole migration run (unset = no limit)",
    )
    migration_check_schema_drift: bool = Field(
        default=True,
        description="Compare the live source schema with the known tables before any DDL",
    )
    migration_ignored_tables: list[str] = Field(
        default_factory=list,
        description="Source tables the drift check should ignore",
    )
    migration_export_filename: str = Field(
        default="supabase_migration.sql",
        description="Suggested filename for SQL exports",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
