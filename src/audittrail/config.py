"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from audittrail.core.constants import HIDDEN_VALUE_PLACEHOLDER, VALID_LOG_LEVELS


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = "development"  # development, staging, production

    # Database
    database_url: str = "sqlite+aiosqlite:///./audittrail.db"
    database_echo: bool = False

    # Observability
    log_level: str = "INFO"

    # Audit
    audit_strict: bool = False
    audit_hidden_value: str = HIDDEN_VALUE_PLACEHOLDER

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name.

        Args:
            v: The configured log level

        Returns:
            The upper-cased log level

        Raises:
            ValueError: If the level is not a standard logging level
        """
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}, got {v!r}"
            )
        return level

    @field_validator("audit_hidden_value")
    @classmethod
    def validate_hidden_value(cls, v: str) -> str:
        """Reject an empty redaction token, which would be indistinguishable from data."""
        if not v:
            raise ValueError("AUDIT_HIDDEN_VALUE must not be empty")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
