"""
Configuration management for InfraCity.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Application
    app_name: str = Field(default="InfraCity")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3001)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./infracity.db")

    # Logging
    log_level: str = Field(default="INFO")

    # Classification service (OpenAI-compatible chat completions)
    classifier_base_url: str = Field(default="https://api.openai.com/v1")
    classifier_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLASSIFIER_API_KEY", "OPENAI_API_KEY"),
    )
    classifier_model: str = Field(default="gpt-4o-mini")
    classifier_timeout_seconds: float = Field(default=120.0)

    # Worker
    worker_poll_interval: int = Field(
        default=5, description="Seconds between poll cycles when the queue is empty."
    )
    clone_timeout_seconds: int = Field(default=300)
    work_dir: Optional[str] = Field(
        default=None,
        description="Parent directory for temporary clones. Defaults to the system temp dir.",
    )
    github_token: Optional[str] = Field(
        default=None,
        description="Optional token used to clone private repositories over https.",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
