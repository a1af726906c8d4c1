"""
sessiontab/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, default admin, webhook secret)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Storage
    STORAGE_BACKEND: Literal["mongo", "memory"] = Field(
        default="mongo",
        description="Ledger storage backend (memory is for local runs only)"
    )
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017/?replicaSet=rs0",
        description="MongoDB connection URI (transactions need a replica set)"
    )
    MONGODB_DB_NAME: str = Field(
        default="sessiontab",
        description="MongoDB database name"
    )

    # Authorization
    DEFAULT_ADMIN_ID: Optional[int] = Field(
        default=None,
        description="External chat ID that is admin in every group"
    )
    WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Shared secret expected in the X-Webhook-Secret header"
    )

    # Conversation store
    CONVERSATION_LOCK_SHARDS: int = Field(
        default=16,
        description="Number of lock buckets guarding the conversation store"
    )
    CONVERSATION_TIMEOUT_MINUTES: Optional[int] = Field(
        default=None,
        description="Drop pending dialogue steps older than this (unset = never)"
    )

    # Presentation
    CURRENCY_LABEL: str = Field(
        default="Toman",
        description="Currency label used in invoices and confirmations"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("CONVERSATION_LOCK_SHARDS")
    @classmethod
    def validate_lock_shards(cls, v):
        """At least one lock bucket is needed."""
        if v < 1:
            raise ValueError("CONVERSATION_LOCK_SHARDS must be >= 1")
        return v

    @field_validator("WEBHOOK_SECRET")
    @classmethod
    def validate_webhook_secret(cls, v, info: ValidationInfo):
        """Ensure the webhook is protected in production."""
        if info.data.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("WEBHOOK_SECRET is required in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


# Global settings instance
settings = Settings()


def validate_settings(config: Optional[Settings] = None):
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    config = config or settings
    errors = []

    if config.STORAGE_BACKEND == "mongo":
        if not config.MONGODB_URL:
            errors.append("MONGODB_URL is required")
        if not config.MONGODB_DB_NAME:
            errors.append("MONGODB_DB_NAME is required")

    # Production-specific validations
    if config.is_production:
        if config.STORAGE_BACKEND == "memory":
            errors.append("STORAGE_BACKEND=memory is not allowed in production")
        if config.DEFAULT_ADMIN_ID is None:
            errors.append("DEFAULT_ADMIN_ID is required in production")
        if not config.WEBHOOK_SECRET:
            errors.append("WEBHOOK_SECRET is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
