"""
Configuration loader module for the Google Contacts bridge.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Validation of configuration keys, types and values
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from gcontact_bridge.sync.mapper import VALID_PHONE_MODES, VALID_PRIMARY_STRATEGIES
from gcontact_bridge.utils.logging import LOG_LEVELS
from gcontact_bridge.utils.paths import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Supported cache backends
VALID_CACHE_BACKENDS = ("memory", "sqlite")

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


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

    Example configuration file::

        phone_mode: permissive
        primary_strategy: primary_flag
        include_contacts_without_phone_numbers: false
        page_size: 200
        cache_ttl: 7d
        cache_backend: sqlite
        cache_db: /var/lib/gcontact-bridge/cache.db
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Configuration values, or empty dict if the file doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration values, or empty dict if the file doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

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

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Unknown keys are ignored.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            # OAuth client
            "client_id": str,
            "client_secret": str,
            "redirect_url": str,
            # Mapping
            "phone_mode": str,
            "allowed_phone_types": list,
            "primary_strategy": str,
            "include_contacts_without_phone_numbers": bool,
            # Directory
            "page_size": int,
            # Cache
            "cache_ttl": (str, int),
            "cache_backend": str,
            "cache_db": str,
            "cache_workers": int,
            # Logging
            "log_dir": str,
            "log_level": str,
        }

        for key, value in config.items():
            if key not in valid_keys:
                continue
            expected_type = valid_keys[key]
            # bool is an int subclass, reject it for numeric keys
            if not isinstance(value, expected_type) or (
                isinstance(value, bool) and expected_type is not bool
            ):
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                raise ConfigError(
                    f"Invalid type for '{key}': expected {type_name}, "
                    f"got {type(value).__name__}"
                )

        if "phone_mode" in config and config["phone_mode"] not in VALID_PHONE_MODES:
            raise ConfigError(
                f"Invalid phone_mode '{config['phone_mode']}'. "
                f"Must be one of: {', '.join(sorted(VALID_PHONE_MODES))}"
            )

        if (
            "primary_strategy" in config
            and config["primary_strategy"] not in VALID_PRIMARY_STRATEGIES
        ):
            raise ConfigError(
                f"Invalid primary_strategy '{config['primary_strategy']}'. "
                f"Must be one of: {', '.join(sorted(VALID_PRIMARY_STRATEGIES))}"
            )

        if (
            "cache_backend" in config
            and config["cache_backend"] not in VALID_CACHE_BACKENDS
        ):
            raise ConfigError(
                f"Invalid cache_backend '{config['cache_backend']}'. "
                f"Must be one of: {', '.join(VALID_CACHE_BACKENDS)}"
            )

        if "log_level" in config and config["log_level"].upper() not in LOG_LEVELS:
            raise ConfigError(
                f"Invalid log_level '{config['log_level']}'. "
                f"Must be one of: {', '.join(LOG_LEVELS)}"
            )

        if "allowed_phone_types" in config:
            types = config["allowed_phone_types"]
            if not types or not all(isinstance(t, str) and t for t in types):
                raise ConfigError(
                    "allowed_phone_types must be a non-empty list of strings"
                )

        for key in ("page_size", "cache_workers"):
            if key in config and config[key] < 1:
                raise ConfigError(f"{key} must be >= 1, got {config[key]}")

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
