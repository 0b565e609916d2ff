"""Configuration management for Librarian using Pydantic Settings."""

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Document store settings
    database_url: str = Field(
        ...,
        description="PostgreSQL database URL with asyncpg driver",
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL queries to console",
    )
    database_pool_size: int = Field(
        default=10,
        ge=1,
        description="Connections kept open per process",
    )
    database_max_overflow: int = Field(
        default=20,
        ge=0,
        description="Extra connections allowed under load",
    )

    # Key-value store settings
    redis_url: str | None = Field(
        default=None,
        description="Redis URL used for the book cache and the bulk job queues",
    )
    redis_host: str | None = Field(
        default=None, description="Redis host, used when REDIS_URL is not set"
    )
    redis_port: int = Field(default=6379, description="Redis port, used with REDIS_HOST")

    # Mail transport settings
    smtp_host: str = Field(default="smtp.gmail.com", description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_username: str | None = Field(default=None, description="SMTP login user")
    smtp_password: SecretStr | None = Field(default=None, description="SMTP password")
    smtp_start_tls: bool = Field(
        default=True,
        description="Upgrade the SMTP connection with STARTTLS",
    )
    smtp_timeout_seconds: float = Field(default=30.0, description="SMTP timeout")
    email_from: str = Field(
        default="noreply@booksapi.com",
        description="Sender address for report emails",
    )
    default_report_email: str | None = Field(
        default=None,
        description=(
            "Last-resort recipient for reports whose owner has no known address. "
            "Unset means such reports fail and are retried on the next pass."
        ),
    )

    # Auth settings
    jwt_secret: SecretStr | None = Field(
        default=None,
        description="Secret used to verify bearer tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    # HTTP settings
    port: int = Field(default=3000, description="Port for the API server")
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins for API requests",
    )

    # Background job settings
    bulk_ingestion_cron: str = Field(
        default="*/2 * * * *",
        description="Crontab schedule for the bulk ingestion job",
    )
    report_cron: str = Field(
        default="*/5 * * * *",
        description="Crontab schedule for the report job",
    )
    job_max_instances: int = Field(
        default=3,
        ge=1,
        description="How many runs of the same job may overlap",
    )
    record_ttl_seconds: int = Field(
        default=86400,
        description="Expiry for bulk status and error records",
    )
    book_cache_ttl_seconds: int = Field(
        default=3600,
        description="Expiry for cached per-user book lists",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    environment: str = Field(
        default="development",
        description="Environment (development or production)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(
                f"Invalid log_level: {v}. Allowed values: {', '.join(sorted(allowed_levels))}"
            )
        return v.upper()

    @field_validator("bulk_ingestion_cron", "report_cron")
    @classmethod
    def validate_crontab(cls, v: str) -> str:
        """Validate a schedule has the five crontab fields."""
        if len(v.split()) != 5:
            raise ValueError(f"Invalid crontab expression: {v!r} (expected 5 fields)")
        return v

    @model_validator(mode="after")
    def resolve_redis_url(self) -> "Settings":
        """Build REDIS_URL from REDIS_HOST/REDIS_PORT when it is not given."""
        if not self.redis_url:
            if not self.redis_host:
                raise ValueError("Set REDIS_URL, or REDIS_HOST (and optionally REDIS_PORT)")
            self.redis_url = f"redis://{self.redis_host}:{self.redis_port}"
        return self

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Validate JWT secret is set in production."""
        if self.environment == "production" and not self.jwt_secret:
            raise ValueError(
                "JWT_SECRET must be set in production environment. "
                "Set JWT_SECRET environment variable."
            )
        return self


# Global settings instance
settings = Settings()  # type: ignore[call-arg]
