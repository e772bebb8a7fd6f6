"""Environment settings using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Path: src/deep_citation/core/config.py -> core -> deep_citation -> src -> project root
_this_file = Path(__file__).resolve()
_project_root = _this_file.parent.parent.parent.parent
_env_file = _project_root / ".env"

DEFAULT_API_URL = "https://api.deepcitation.com"


class Settings(BaseSettings):
    """Settings loaded from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=str(_env_file) if _env_file.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    # Verification service
    deepcitation_api_key: str | None = None
    deepcitation_api_url: str = DEFAULT_API_URL
    deepcitation_max_upload_concurrency: int = Field(default=5, ge=1)
    deepcitation_request_timeout: float = Field(default=60.0, gt=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        """Accept lowercase level names from the environment."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("deepcitation_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Store the base URL without a trailing slash."""
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
