"""Load config.yaml, expanding ``${VAR}`` placeholders from the environment."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic_core import ValidationError

from identity_sync.runtime.config.config_data import ConfigData

DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_FILE_ENV = "APP_CONFIG_FILE"

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def _resolve_placeholder(expression: str) -> str:
    if ":-" in expression:
        name, default = expression.split(":-", 1)
        return os.getenv(name, default)

    name, _, message = expression.partition(":?")
    value = os.getenv(name)
    if value is not None:
        return value
    if message:
        raise ValueError(f"Required environment variable {name}: {message}")
    raise ValueError(f"Required environment variable {name} not set")


def substitute_env_vars(text: str) -> str:
    """
    Expand environment placeholders in text.

    Supported forms:
    - ${VAR} - required, fails when unset
    - ${VAR:-default} - falls back to ``default``
    - ${VAR:?message} - required, fails with ``message``
    """
    return _PLACEHOLDER.sub(lambda match: _resolve_placeholder(match.group(1)), text)


def apply_environment_overrides(env_mode: str) -> list[str]:
    """Copy ``<ENV>_FOO`` variables onto ``FOO`` for the active environment.

    Returns:
        Names of the variables that were set
    """
    prefix = f"{env_mode.upper()}_"
    overrides = {
        name[len(prefix):]: value
        for name, value in os.environ.items()
        if name.startswith(prefix)
    }
    os.environ.update(overrides)
    for name in overrides:
        logger.debug("Set environment variable {} from {}{}", name, prefix, name)
    return list(overrides)


def resolve_config_path() -> Path:
    """Config file location, taken from ``APP_CONFIG_FILE`` when set."""
    return Path(os.getenv(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE))


def _parse_yaml(text: str) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e
    if not loaded:
        raise ValueError("Failed to parse YAML")
    return loaded


def load_templated_yaml(file_path: Path) -> ConfigData:
    """
    Read a config file and validate its ``config`` section.

    Args:
        file_path: Path to the YAML file

    Raises:
        ValueError: On a missing required variable, bad YAML or invalid settings
        FileNotFoundError: If the YAML file doesn't exist
    """
    raw = Path(file_path).read_text()

    env_mode = os.getenv("APP_ENVIRONMENT", "development")
    logger.info("Loading configuration for environment: {}", env_mode)
    applied = apply_environment_overrides(env_mode)
    if applied:
        logger.info("Applied environment-specific overrides: {}", applied)

    loaded = _parse_yaml(substitute_env_vars(raw))
    try:
        return ConfigData.model_validate(loaded.get("config") or {})
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
