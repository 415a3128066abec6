"""
Configuration loader module for octopus-sync.

Provides YAML-based options file loading with support for:
- Resolving the configuration directory and paths named inside it
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Validation of option types and ranges
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

# Configuration directory, overridable by flag or environment
DEFAULT_CONFIG_DIR = Path.home() / ".octopus-sync"
CONFIG_DIR_ENV_VAR = "OCTOPUS_SYNC_CONFIG_DIR"

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Option name -> accepted type(s)
VALID_KEYS: dict[str, type[Any] | tuple[type[Any], ...]] = {
    # CLI options
    "verbose": bool,
    "dry_run": bool,
    # Batch execution
    "chunk_size": int,
    "chunk_delay": (int, float),
    "retry_attempts": int,
    "retry_wait": (int, float),
    # Remote API
    "page_size": int,
    "request_timeout": (int, float),
    "api_base_url": str,
    # Files
    "mail_config": str,
    "env_file": str,
    # Logging
    "log_dir": str,
    "log_retention_count": int,
}

POSITIVE_INT_KEYS = ("chunk_size", "retry_attempts", "page_size")
NON_NEGATIVE_KEYS = ("chunk_delay", "retry_wait", "log_retention_count")

MAX_PAGE_SIZE = 100

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Absolute configuration directory.

    The explicit argument wins, then $OCTOPUS_SYNC_CONFIG_DIR, then
    ~/.octopus-sync.
    """
    chosen = config_dir or os.environ.get(CONFIG_DIR_ENV_VAR) or DEFAULT_CONFIG_DIR
    return Path(chosen).expanduser().resolve()


def resolve_config_path(path: Path | str, config_dir: Path) -> Path:
    """Path named in configuration; relative paths live in config_dir."""
    target = Path(path).expanduser()
    return target if target.is_absolute() else config_dir / target


def _type_name(expected: type[Any] | tuple[type[Any], ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to $OCTOPUS_SYNC_CONFIG_DIR or ~/.octopus-sync/
            config_file: Name of the configuration file (default: config.yaml)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        else:
            env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
            self.config_dir = Path(env_dir) if env_dir else DEFAULT_CONFIG_DIR

        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Configuration values, or an empty dict if the file doesn't exist

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration values, or an empty dict if the file doesn't exist

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if config is None:
            logger.debug(f"Configuration file is empty: {path}")
            return {}

        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate option types and ranges.

        Unknown keys are ignored with a debug message.

        Raises:
            ConfigError: If an option has the wrong type or is out of range
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            expected = VALID_KEYS.get(key)
            if expected is None:
                logger.debug(f"Ignoring unknown configuration key: {key}")
                continue
            # YAML booleans must not pass as numbers
            if isinstance(value, bool) and expected is not bool:
                raise ConfigError(
                    f"Invalid type for '{key}': expected {_type_name(expected)}, "
                    f"got bool"
                )
            if not isinstance(value, expected):
                raise ConfigError(
                    f"Invalid type for '{key}': expected {_type_name(expected)}, "
                    f"got {type(value).__name__}"
                )

        for key in POSITIVE_INT_KEYS:
            if key in config and config[key] < 1:
                raise ConfigError(f"{key} must be >= 1, got {config[key]}")

        for key in NON_NEGATIVE_KEYS:
            if key in config and config[key] < 0:
                raise ConfigError(f"{key} must be >= 0, got {config[key]}")

        if "page_size" in config and config["page_size"] > MAX_PAGE_SIZE:
            raise ConfigError(
                f"page_size must be <= {MAX_PAGE_SIZE}, got {config['page_size']}"
            )

        if "request_timeout" in config and config["request_timeout"] <= 0:
            raise ConfigError(
                f"request_timeout must be > 0, got {config['request_timeout']}"
            )

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
