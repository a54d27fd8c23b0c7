"""
Runtime settings for the Google Contacts bridge.

Combines the optional YAML configuration file with the process environment.
The OAuth client settings are read from the environment first:

    GOOGLE_CLIENT_ID       OAuth client id
    GOOGLE_CLIENT_SECRET   OAuth client secret
    GOOGLE_REDIRECT_URL    Callback URL registered for the client

and fall back to client_id / client_secret / redirect_url in the file.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from gcontact_bridge.api.people_api import DEFAULT_PAGE_SIZE
from gcontact_bridge.config.loader import ConfigError, ConfigLoader
from gcontact_bridge.storage.cache import DEFAULT_CACHE_TTL, DEFAULT_MAX_WORKERS
from gcontact_bridge.sync.mapper import (
    DEFAULT_ALLOWED_PHONE_TYPES,
    MappingPolicy,
    PhoneMode,
    PrimaryStrategy,
)
from gcontact_bridge.utils.paths import resolve_config_dir

# Environment variables holding the OAuth client settings
ENV_CLIENT_ID = "GOOGLE_CLIENT_ID"
ENV_CLIENT_SECRET = "GOOGLE_CLIENT_SECRET"
ENV_REDIRECT_URL = "GOOGLE_REDIRECT_URL"

# Default SQLite cache file name inside the config directory
DEFAULT_CACHE_DB = "cache.db"

logger = logging.getLogger(__name__)


def parse_interval(interval: str | int) -> int:
    """Parse an interval string into seconds.

    Accepts interval strings with units (s, m, h, d) or plain integers.

    Args:
        interval: Interval specification. Examples:
            - "30s" -> 30 seconds
            - "5m" -> 300 seconds
            - "1h" -> 3600 seconds
            - "30d" -> 2592000 seconds
            - 3600 -> 3600 seconds (pass-through)

    Returns:
        Interval in seconds as an integer.

    Raises:
        ValueError: If the interval format is invalid or uses an unknown unit.
    """
    if isinstance(interval, bool):
        raise ValueError("Invalid interval type: bool. Expected str or int.")

    if isinstance(interval, int):
        return interval

    if isinstance(interval, str):
        try:
            return int(interval)
        except ValueError:
            pass

        match = re.match(r"^(\d+)\s*([smhd])$", interval.lower().strip())
        if not match:
            raise ValueError(
                f"Invalid interval format: '{interval}'. "
                "Use format like '30s', '5m', '1h', or '30d'."
            )

        multipliers = {"s": 1, "m": 60, "h": 3600, "d": 86400}
        return int(match.group(1)) * multipliers[match.group(2)]

    raise ValueError(
        f"Invalid interval type: {type(interval).__name__}. Expected str or int."
    )


@dataclass
class Settings:
    """
    Resolved bridge settings.

    Attributes:
        client_id: OAuth client id
        client_secret: OAuth client secret
        redirect_url: OAuth callback URL
        phone_mode: Strict or permissive phone type mapping
        allowed_phone_types: Phone types kept in strict mode
        primary_strategy: Signal used to choose email and photo entries
        include_contacts_without_phone_numbers: Keep records without numbers
        page_size: Records per page when fetching
        cache_ttl: Cache entry lifetime in seconds
        cache_backend: "memory" or "sqlite"
        cache_db: SQLite file for the sqlite backend
        cache_workers: Background population threads
        log_dir: Directory for daily log files (None disables file logging)
        log_level: Console log level name (None defers to the environment)
    """

    client_id: str
    client_secret: str
    redirect_url: str
    phone_mode: PhoneMode = PhoneMode.STRICT
    allowed_phone_types: tuple[str, ...] = DEFAULT_ALLOWED_PHONE_TYPES
    primary_strategy: PrimaryStrategy = PrimaryStrategy.CONTACT_SOURCE
    include_contacts_without_phone_numbers: bool = True
    page_size: int = DEFAULT_PAGE_SIZE
    cache_ttl: int = DEFAULT_CACHE_TTL
    cache_backend: str = "memory"
    cache_db: Path | None = None
    cache_workers: int = DEFAULT_MAX_WORKERS
    log_dir: Path | None = None
    log_level: str | None = None

    @classmethod
    def from_dict(
        cls,
        config: dict[str, Any],
        environ: Mapping[str, str] | None = None,
        config_dir: Path | None = None,
    ) -> Settings:
        """
        Build settings from a validated configuration dictionary.

        Args:
            config: Values loaded by ConfigLoader
            environ: Environment mapping (default: os.environ)
            config_dir: Directory used for the default SQLite cache file

        Returns:
            Settings instance

        Raises:
            ConfigError: If an OAuth setting is missing or a value is invalid
        """
        env = os.environ if environ is None else environ

        def required(env_name: str, key: str, description: str) -> str:
            value = env.get(env_name) or config.get(key)
            if not value:
                raise ConfigError(f"Missing {description} in environment ({env_name}).")
            return str(value)

        client_id = required(ENV_CLIENT_ID, "client_id", "client ID")
        client_secret = required(ENV_CLIENT_SECRET, "client_secret", "client secret")
        redirect_url = required(ENV_REDIRECT_URL, "redirect_url", "redirect URI")

        try:
            cache_ttl = parse_interval(config.get("cache_ttl", DEFAULT_CACHE_TTL))
        except ValueError as e:
            raise ConfigError(f"Invalid cache_ttl: {e}") from e
        if cache_ttl <= 0:
            raise ConfigError(f"cache_ttl must be > 0, got {cache_ttl}")

        cache_backend = config.get("cache_backend", "memory")
        cache_db: Path | None = None
        if cache_backend == "sqlite":
            if config.get("cache_db"):
                cache_db = Path(config["cache_db"]).expanduser()
            else:
                cache_db = resolve_config_dir(config_dir) / DEFAULT_CACHE_DB

        log_dir = Path(config["log_dir"]).expanduser() if config.get("log_dir") else None

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            redirect_url=redirect_url,
            phone_mode=PhoneMode(config.get("phone_mode", PhoneMode.STRICT.value)),
            allowed_phone_types=tuple(
                config.get("allowed_phone_types", DEFAULT_ALLOWED_PHONE_TYPES)
            ),
            primary_strategy=PrimaryStrategy(
                config.get("primary_strategy", PrimaryStrategy.CONTACT_SOURCE.value)
            ),
            include_contacts_without_phone_numbers=config.get(
                "include_contacts_without_phone_numbers", True
            ),
            page_size=config.get("page_size", DEFAULT_PAGE_SIZE),
            cache_ttl=cache_ttl,
            cache_backend=cache_backend,
            cache_db=cache_db,
            cache_workers=config.get("cache_workers", DEFAULT_MAX_WORKERS),
            log_dir=log_dir,
            log_level=config["log_level"].upper() if config.get("log_level") else None,
        )

    def mapping_policy(self) -> MappingPolicy:
        """Build the PersonMapper policy described by these settings."""
        return MappingPolicy(
            phone_mode=self.phone_mode,
            allowed_phone_types=self.allowed_phone_types,
            primary_strategy=self.primary_strategy,
            include_contacts_without_phone_numbers=(
                self.include_contacts_without_phone_numbers
            ),
        )


def load_settings(
    config_dir: Path | None = None,
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load settings from the configuration file and the environment.

    Args:
        config_dir: Configuration directory (default: resolve_config_dir())
        config_file: Explicit configuration file path
        environ: Environment mapping (default: os.environ)

    Returns:
        Settings instance

    Raises:
        ConfigError: If the file is invalid or required settings are missing
    """
    loader = ConfigLoader(config_dir=config_dir)
    if config_file is not None:
        config = loader.load_from_file(config_file)
        if config:
            loader.validate(config)
    else:
        config = loader.load_and_validate()

    settings = Settings.from_dict(config, environ=environ, config_dir=loader.config_dir)
    logger.debug(
        f"Loaded settings (phone_mode={settings.phone_mode.value}, "
        f"cache_backend={settings.cache_backend})"
    )
    return settings
