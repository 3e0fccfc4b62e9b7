"""
Application configuration using Pydantic Settings.

Loads process-level configuration from environment variables and .env file.
Engine tuning (resources, thresholds, intervals) lives in
``autoheal.healing.config``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOHEAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="autoheal-core", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Engine
    config_path: str | None = Field(
        default=None,
        description="Optional YAML file with engine configuration",
    )

    # Logging / Privacy
    log_redaction_enabled: bool = Field(default=True, description="Mask credentials in logs")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"


# Global settings instance
settings = Settings()
