"""Environment variable validation and management."""

import os
import logging
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class EnvironmentError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass


def validate_environment() -> None:
    """Validate critical environment variables.

    Raises EnvironmentError if validation fails.
    """
    defaults = {
        "DB_PATH": os.getenv("DB_PATH") or "data.db",
    }

    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars: Dict[str, str] = {
        "SCORING_CONFIG_PATH": "JSON file overriding the built-in scoring configuration",
        "LOG_LEVEL": "Root log level (DEBUG, INFO, WARNING, ERROR)",
    }

    config_path = os.getenv("SCORING_CONFIG_PATH")
    if config_path and not Path(config_path).is_file():
        raise EnvironmentError(f"SCORING_CONFIG_PATH does not point to a file: {config_path}")

    log_level = os.getenv("LOG_LEVEL")
    if log_level and log_level.upper() not in _LOG_LEVELS:
        raise EnvironmentError(f"Invalid LOG_LEVEL: {log_level}")

    # Log optional variables status
    for var, description in optional_vars.items():
        if not os.getenv(var):
            logger.warning("Optional environment variable not set: %s (%s)", var, description)


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on", "enabled"}
