"""Tunable behaviour loaded from ``config/app.yaml``."""

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from deep_citation.core.yaml_loader import load_yaml_config

logger = logging.getLogger(__name__)

# app_config.py -> core -> deep_citation -> src -> project root
_project_root = Path(__file__).resolve().parent.parent.parent.parent
DEFAULT_CONFIG_PATH = _project_root / "config" / "app.yaml"


class ImageFormat(str, Enum):
    """Evidence image formats the verification service can render."""

    AVIF = "avif"
    WEBP = "webp"
    PNG = "png"
    JPEG = "jpeg"


class ParsingConfig(BaseModel):
    """Limits applied while normalizing citation markup."""

    # Ranges wider than this are sampled instead of fully expanded
    max_range_size: int = Field(default=1000, gt=0)
    range_sample_count: int = Field(default=50, ge=2)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def sample_fits_range(self) -> "ParsingConfig":
        if self.range_sample_count > self.max_range_size:
            raise ValueError("range_sample_count cannot exceed max_range_size")
        return self


class ClientConfig(BaseModel):
    """Defaults for the verification client."""

    output_image_format: ImageFormat = ImageFormat.AVIF

    model_config = {"frozen": True}


class AppConfig(BaseModel):
    """Root configuration."""

    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    model_config = {"frozen": True}


def get_default_config() -> AppConfig:
    """Configuration used when no YAML file is present."""
    return AppConfig()


@lru_cache(maxsize=1)
def load_app_config(config_path: Path | None = None) -> AppConfig:
    """Load and validate configuration from YAML.

    Args:
        config_path: YAML file to read. Defaults to ``config/app.yaml`` in
            the project root.

    Returns:
        Validated AppConfig. Falls back to defaults when the file is missing.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.info(f"Config file not found at {config_path}, using default configuration")
        return get_default_config()

    try:
        config = AppConfig.model_validate(load_yaml_config(config_path))
    except Exception as e:
        logger.error(f"Failed to load configuration from {config_path}: {e}")
        raise
    logger.info(f"Loaded configuration from {config_path}")
    return config


def get_app_config() -> AppConfig:
    """Get the cached application configuration."""
    return load_app_config()


def clear_config_cache() -> None:
    """Clear the configuration cache (used by tests)."""
    load_app_config.cache_clear()
