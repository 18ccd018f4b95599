# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for Campus Roster.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.enrollment.max_attempts)
    3
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Roster database configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "roster"
    password: SecretStr = SecretStr("roster_password")
    host: str = "roster-db"
    port: int = 5432
    database: str = "campus_roster"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """JWT configuration for validating caller identity.

    Attributes:
        secret_key: Secret key used to verify token signatures.
        algorithm: JWT signing algorithm.
        access_token_expire_minutes: Access token expiration time.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(
        default=30,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 34000
    workers: int = 2
    reload: bool = False


class SMTPSettings(BaseSettings):
    """SMTP configuration for the credentials email channel.

    The channel is disabled (deliveries are skipped) unless host,
    username, password and from_email are all set.

    Attributes:
        host: SMTP server host.
        port: SMTP server port.
        username: SMTP login.
        password: SMTP password.
        use_tls: Whether to upgrade the connection with STARTTLS.
        from_email: Sender address.
        from_name: Sender display name.
        timeout: Send timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: SecretStr | None = None
    use_tls: bool = True
    from_email: str | None = None
    from_name: str = "Campus Roster"
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        """Check whether all required SMTP values are present."""
        return all([self.host, self.username, self.password, self.from_email])


class EnrollmentSettings(BaseSettings):
    """Enrollment engine configuration.

    Attributes:
        max_attempts: Placement attempts before a capacity race is reported.
        default_policy: Placement policy used when the caller does not pick one.
        default_section_capacity: Section capacity when neither the request
            nor the organization provides one.
        max_bulk_size: Maximum drafts accepted by a bulk enrollment.
        storage_backend: Store implementation used by the API.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENROLLMENT_",
        extra="ignore",
    )

    max_attempts: int = Field(default=3, ge=1, le=10)
    default_policy: Literal["first_fit", "load_balanced"] = "first_fit"
    default_section_capacity: int = Field(default=30, ge=1, le=50)
    max_bulk_size: int = Field(default=40, ge=1)
    storage_backend: Literal["postgres", "memory"] = "postgres"


class ReconciliationSettings(BaseSettings):
    """Stats reconciliation configuration.

    Attributes:
        sweep_enabled: Whether the periodic full reconciliation runs.
        sweep_interval_minutes: Minutes between full reconciliation sweeps.
        drift_threshold: Minimum difference between a cached counter and
            its recomputed value that is reported as drift.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECONCILIATION_",
        extra="ignore",
    )

    sweep_enabled: bool = True
    sweep_interval_minutes: int = Field(default=15, ge=1)
    drift_threshold: int = Field(default=1, ge=1)


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Roster database settings.
        jwt: JWT settings.
        cors: CORS settings.
        api: API server settings.
        smtp: Email channel settings.
        enrollment: Enrollment engine settings.
        reconciliation: Stats reconciliation settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    enrollment: EnrollmentSettings = Field(default_factory=EnrollmentSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
                )
            if self.enrollment.storage_backend == "memory":
                raise ValueError(
                    "The in-process enrollment store cannot be used in production. "
                    "Set ENROLLMENT_STORAGE_BACKEND=postgres."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
