"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI (required - extraction cannot run without it)
    openai_api_key: str = Field(..., min_length=1)
    openai_model: str = "gpt-4.1"

    # Upper bound for a single extraction call; the service itself never retries
    extraction_timeout_seconds: float = Field(default=120.0, gt=0)

    # Rasterization (108 DPI == 1.5x the 72 DPI PDF user space)
    render_dpi: int = Field(default=108, gt=0)
    jpeg_quality: int = Field(default=92, ge=1, le=95)

    # Debug flags
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the backend directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            missing = [
                ".".join(str(part) for part in err["loc"]).upper()
                for err in e.errors()
            ]
            raise ConfigurationError(
                f"Invalid or missing configuration: {', '.join(missing)}"
            ) from e


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.

    Raises:
        ConfigurationError: If OPENAI_API_KEY (or another setting) is invalid.
    """
    return Settings()
