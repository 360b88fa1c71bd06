"""Application configuration via pydantic-settings.

All config is sourced from environment variables. Never use os.getenv() directly.
"""

import json

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for chats, workflows, dashboard items and templates."""

    model_config = SettingsConfigDict(env_prefix="")

    database_url: str
    database_url_sync: str

    @field_validator("database_url", "database_url_sync")
    @classmethod
    def validate_database_url_not_empty(cls, v: str, info) -> str:
        if not v or not v.strip():
            raise ValueError(
                f"{info.field_name.upper()} must be set via environment variable. "
                "No default is provided for security reasons."
            )
        return v


class RedisSettings(BaseSettings):
    """Redis configuration for execution records and pub/sub."""

    model_config = SettingsConfigDict(env_prefix="")

    redis_url: str = "redis://redis:6379/0"


class AuthSettings(BaseSettings):
    """Keycloak OIDC SSO authentication configuration."""

    model_config = SettingsConfigDict(env_prefix="")

    keycloak_url: str = "http://keycloak:8080"
    keycloak_realm: str = "insightflow"
    keycloak_client_id: str = "insightflow-app"
    keycloak_client_secret: str = ""


class EngineSettings(BaseSettings):
    """Workflow execution engine settings."""

    model_config = SettingsConfigDict(env_prefix="")

    # Execution record TTL in Redis (seconds)
    execution_ttl: int = 3600

    # Remote CSV fetch timeout for data input nodes (seconds)
    csv_fetch_timeout: float = 30.0

    # Rows sampled for CSV column type inference
    csv_type_sample_size: int = 10

    # Rows kept in persisted table dashboard items
    dashboard_preview_rows: int = 5

    # Upper bound on rows fed to chart processors
    chart_row_limit: int = 5000

    # Page size for postgres input nodes reading a whole table
    postgres_page_size: int = 1000


class Settings(BaseSettings):
    """InsightFlow application settings.

    Environment variables are the single source of truth.
    Defaults are development-safe values only.
    """

    model_config = SettingsConfigDict(env_file=".env")

    app_env: str = "development"
    secret_key: str = "dev-secret-change-in-prod"

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Refuse to start with dev defaults in non-development environments.

        Prevents accidental deployment with auth bypass enabled.
        """
        is_prod = self.app_env != "development"
        has_dev_secret = self.secret_key == "dev-secret-change-in-prod"
        if is_prod and has_dev_secret:
            raise ValueError(
                f"SECRET_KEY must be set when APP_ENV={self.app_env!r}. "
                "The default dev secret is not allowed outside development."
            )
        return self

    # Nested settings groups
    database: DatabaseSettings = DatabaseSettings()
    redis: RedisSettings = RedisSettings()
    auth: AuthSettings = AuthSettings()
    engine: EngineSettings = EngineSettings()

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    metrics_enabled: bool = True

    # Dev-mode auth bypass (only used when app_env == "development" and no auth header)
    dev_user_id: str = "00000000-0000-0000-0000-000000000001"
    dev_tenant_id: str = "00000000-0000-0000-0000-000000000002"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return json.loads(v)
        return v


settings = Settings()
