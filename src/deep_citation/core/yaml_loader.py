"""YAML loading with environment variable interpolation."""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# ${VAR} and ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def interpolate_env_vars(value: Any) -> Any:
    """Recursively substitute environment variables into parsed YAML.

    ``${VAR}`` requires the variable to be set; ``${VAR:-default}`` falls
    back to ``default``.

    Raises:
        ValueError: If a required variable is missing.
    """
    if isinstance(value, str):

        def substitute(match: re.Match[str]) -> str:
            name, default = match.group(1), match.group(2)
            found = os.environ.get(name)
            if found is not None:
                return found
            if default is not None:
                return default
            raise ValueError(f"Environment variable '{name}' is not set and has no default")

        return ENV_VAR_PATTERN.sub(substitute, value)

    if isinstance(value, dict):
        return {key: interpolate_env_vars(item) for key, item in value.items()}

    if isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]

    return value


def load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Read a YAML mapping from ``config_path`` and interpolate it.

    An empty file yields an empty dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If interpolation fails or the document is not a mapping.
        yaml.YAMLError: If the YAML is malformed.
    """
    logger.debug(f"Reading YAML from {config_path}")

    with open(config_path, encoding="utf-8") as f:
        document = yaml.safe_load(f)

    if document is None:
        logger.warning(f"YAML file {config_path} is empty")
        return {}

    interpolated = interpolate_env_vars(document)
    if not isinstance(interpolated, dict):
        raise ValueError(f"Expected a mapping in {config_path}, got {type(interpolated).__name__}")
    return interpolated
