"""
Tests for the config module.

Tests configuration loading and validation, settings resolution from the
environment, and interval parsing.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from gcontact_bridge.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)
from gcontact_bridge.config.settings import (
    DEFAULT_CACHE_DB,
    Settings,
    load_settings,
    parse_interval,
)
from gcontact_bridge.storage.cache import DEFAULT_CACHE_TTL
from gcontact_bridge.sync.mapper import PhoneMode, PrimaryStrategy
from gcontact_bridge.utils.paths import CONFIG_DIR_ENV_VAR, resolve_config_dir

ENVIRON = {
    "GOOGLE_CLIENT_ID": "client-123.apps.googleusercontent.com",
    "GOOGLE_CLIENT_SECRET": "s3cret",
    "GOOGLE_REDIRECT_URL": "https://bridge.example.com/oauth/callback",
}


class TestResolveConfigDir:
    """Tests for resolve_config_dir()."""

    def test_explicit_dir(self, tmp_path):
        """Test that an explicit directory wins."""
        with patch.dict(os.environ, {CONFIG_DIR_ENV_VAR: "/elsewhere"}):
            assert resolve_config_dir(tmp_path) == tmp_path.resolve()

    def test_env_dir(self, tmp_path):
        """Test that the environment variable is used next."""
        with patch.dict(os.environ, {CONFIG_DIR_ENV_VAR: str(tmp_path)}):
            assert resolve_config_dir() == tmp_path.resolve()

    def test_default_dir(self):
        """Test the home directory default."""
        with patch.dict(os.environ, {}, clear=True):
            assert resolve_config_dir().name == ".gcontact-bridge"


class TestConfigLoading:
    """Tests for ConfigLoader.load()."""

    @pytest.fixture
    def loader(self, tmp_path):
        return ConfigLoader(config_dir=tmp_path)

    def test_missing_file(self, loader):
        """Test that a missing file yields an empty config."""
        assert loader.load() == {}

    def test_empty_file(self, loader, tmp_path):
        """Test that an empty file yields an empty config."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("")
        assert loader.load() == {}

    def test_valid_file(self, loader, tmp_path):
        """Test loading a valid configuration."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text(
            "phone_mode: permissive\npage_size: 200\ncache_ttl: 7d\n"
        )
        assert loader.load() == {
            "phone_mode": "permissive",
            "page_size": 200,
            "cache_ttl": "7d",
        }

    def test_invalid_yaml(self, loader, tmp_path):
        """Test that unparsable YAML raises ConfigError."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("phone_mode: [unclosed\n")
        with pytest.raises(ConfigError, match="parse"):
            loader.load()

    def test_non_dict_yaml(self, loader, tmp_path):
        """Test that a YAML list raises ConfigError."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="dictionary"):
            loader.load()

    def test_load_from_custom_file(self, loader, tmp_path):
        """Test loading a file outside the config directory."""
        custom = tmp_path / "custom.yaml"
        custom.write_text("cache_backend: sqlite\n")
        assert loader.load_from_file(custom) == {"cache_backend": "sqlite"}


class TestConfigValidation:
    """Tests for ConfigLoader.validate()."""

    @pytest.fixture
    def loader(self, tmp_path):
        return ConfigLoader(config_dir=tmp_path)

    def test_valid_config(self, loader):
        """Test that a complete valid config passes."""
        loader.validate(
            {
                "phone_mode": "strict",
                "allowed_phone_types": ["home", "main"],
                "primary_strategy": "primary_flag",
                "include_contacts_without_phone_numbers": False,
                "page_size": 50,
                "cache_ttl": 3600,
                "cache_backend": "sqlite",
                "cache_workers": 2,
                "log_level": "debug",
                "unknown_key": "ignored",
            }
        )

    @pytest.mark.parametrize(
        "config,message",
        [
            ({"phone_mode": "loose"}, "phone_mode"),
            ({"primary_strategy": "first"}, "primary_strategy"),
            ({"cache_backend": "redis"}, "cache_backend"),
            ({"allowed_phone_types": []}, "allowed_phone_types"),
            ({"allowed_phone_types": ["home", 3]}, "allowed_phone_types"),
            ({"page_size": 0}, "page_size"),
            ({"cache_workers": -1}, "cache_workers"),
            ({"page_size": "100"}, "Invalid type"),
            ({"page_size": True}, "Invalid type"),
            ({"include_contacts_without_phone_numbers": "no"}, "Invalid type"),
            ({"cache_ttl": 1.5}, "Invalid type"),
            ({"log_level": "verbose"}, "log_level"),
            ({"log_level": 10}, "Invalid type"),
        ],
    )
    def test_invalid_config(self, loader, config, message):
        """Test that invalid values raise ConfigError."""
        with pytest.raises(ConfigError, match=message):
            loader.validate(config)

    def test_load_and_validate(self, loader, tmp_path):
        """Test that loaded files are validated."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("phone_mode: loose\n")
        with pytest.raises(ConfigError):
            loader.load_and_validate()


class TestParseInterval:
    """Tests for parse_interval()."""

    @pytest.mark.parametrize(
        "interval,expected",
        [
            (3600, 3600),
            ("3600", 3600),
            ("30s", 30),
            ("5m", 300),
            ("1h", 3600),
            ("30d", 2592000),
            (" 2H ", 7200),
        ],
    )
    def test_valid_intervals(self, interval, expected):
        """Test supported interval formats."""
        assert parse_interval(interval) == expected

    @pytest.mark.parametrize("interval", ["", "5w", "h", "1.5h", True, 1.5])
    def test_invalid_intervals(self, interval):
        """Test that invalid intervals raise ValueError."""
        with pytest.raises(ValueError):
            parse_interval(interval)


class TestSettingsFromDict:
    """Tests for Settings.from_dict()."""

    def test_defaults(self, tmp_path):
        """Test defaults with only the OAuth settings present."""
        settings = Settings.from_dict({}, environ=ENVIRON, config_dir=tmp_path)

        assert settings.client_id == "client-123.apps.googleusercontent.com"
        assert settings.phone_mode is PhoneMode.STRICT
        assert settings.allowed_phone_types == ("home", "work", "mobile")
        assert settings.primary_strategy is PrimaryStrategy.CONTACT_SOURCE
        assert settings.include_contacts_without_phone_numbers is True
        assert settings.cache_ttl == DEFAULT_CACHE_TTL
        assert settings.cache_backend == "memory"
        assert settings.cache_db is None
        assert settings.log_dir is None
        assert settings.log_level is None

    def test_file_values(self, tmp_path):
        """Test that file values are applied."""
        settings = Settings.from_dict(
            {
                "phone_mode": "permissive",
                "primary_strategy": "primary_flag",
                "include_contacts_without_phone_numbers": False,
                "page_size": 250,
                "cache_ttl": "1h",
                "log_dir": str(tmp_path / "logs"),
                "log_level": "warning",
            },
            environ=ENVIRON,
            config_dir=tmp_path,
        )

        assert settings.phone_mode is PhoneMode.PERMISSIVE
        assert settings.primary_strategy is PrimaryStrategy.PRIMARY_FLAG
        assert settings.include_contacts_without_phone_numbers is False
        assert settings.page_size == 250
        assert settings.cache_ttl == 3600
        assert settings.log_dir == tmp_path / "logs"
        assert settings.log_level == "WARNING"

    def test_environment_overrides_file(self, tmp_path):
        """Test that the environment wins over the file."""
        settings = Settings.from_dict(
            {"client_id": "from-file"}, environ=ENVIRON, config_dir=tmp_path
        )
        assert settings.client_id == "client-123.apps.googleusercontent.com"

    def test_file_fallback(self, tmp_path):
        """Test that the file is used when the environment is silent."""
        settings = Settings.from_dict(
            {
                "client_id": "file-id",
                "client_secret": "file-secret",
                "redirect_url": "https://file.example.com/cb",
            },
            environ={},
            config_dir=tmp_path,
        )
        assert settings.client_id == "file-id"
        assert settings.redirect_url == "https://file.example.com/cb"

    @pytest.mark.parametrize(
        "missing,message",
        [
            ("GOOGLE_CLIENT_ID", "Missing client ID"),
            ("GOOGLE_CLIENT_SECRET", "Missing client secret"),
            ("GOOGLE_REDIRECT_URL", "Missing redirect URI"),
        ],
    )
    def test_missing_oauth_setting(self, tmp_path, missing, message):
        """Test that each missing OAuth setting is reported."""
        environ = {k: v for k, v in ENVIRON.items() if k != missing}
        with pytest.raises(ConfigError, match=message):
            Settings.from_dict({}, environ=environ, config_dir=tmp_path)

    def test_invalid_cache_ttl(self, tmp_path):
        """Test that unparsable or non-positive ttls are rejected."""
        with pytest.raises(ConfigError, match="cache_ttl"):
            Settings.from_dict({"cache_ttl": "soon"}, environ=ENVIRON, config_dir=tmp_path)
        with pytest.raises(ConfigError, match="cache_ttl"):
            Settings.from_dict({"cache_ttl": 0}, environ=ENVIRON, config_dir=tmp_path)

    def test_sqlite_default_path(self, tmp_path):
        """Test that the sqlite cache lives in the config directory by default."""
        settings = Settings.from_dict(
            {"cache_backend": "sqlite"}, environ=ENVIRON, config_dir=tmp_path
        )
        assert settings.cache_db == tmp_path.resolve() / DEFAULT_CACHE_DB

    def test_sqlite_custom_path(self, tmp_path):
        """Test an explicit sqlite cache path."""
        settings = Settings.from_dict(
            {"cache_backend": "sqlite", "cache_db": str(tmp_path / "c.db")},
            environ=ENVIRON,
            config_dir=tmp_path,
        )
        assert settings.cache_db == tmp_path / "c.db"

    def test_mapping_policy(self, tmp_path):
        """Test that the mapping policy mirrors the settings."""
        settings = Settings.from_dict(
            {"phone_mode": "permissive", "allowed_phone_types": ["main"]},
            environ=ENVIRON,
            config_dir=tmp_path,
        )
        policy = settings.mapping_policy()

        assert policy.permissive is True
        assert policy.allowed_phone_types == ("main",)
        assert policy.include_contacts_without_phone_numbers is True


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_without_file(self, tmp_path):
        """Test loading from the environment only."""
        settings = load_settings(config_dir=tmp_path, environ=ENVIRON)
        assert settings.redirect_url == "https://bridge.example.com/oauth/callback"

    def test_with_default_file(self, tmp_path):
        """Test that the config directory file is read."""
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("page_size: 42\n")
        assert load_settings(config_dir=tmp_path, environ=ENVIRON).page_size == 42

    def test_with_explicit_file(self, tmp_path):
        """Test that an explicit file is read and validated."""
        config_file = tmp_path / "other.yaml"
        config_file.write_text("phone_mode: loose\n")
        with pytest.raises(ConfigError, match="phone_mode"):
            load_settings(config_dir=tmp_path, config_file=config_file, environ=ENVIRON)

    def test_missing_credentials(self, tmp_path):
        """Test that missing OAuth settings are reported."""
        with pytest.raises(ConfigError, match="Missing client ID"):
            load_settings(config_dir=tmp_path, environ={})

    def test_reads_process_environment(self, tmp_path):
        """Test that os.environ is the default environment."""
        with patch.dict(os.environ, ENVIRON):
            settings = load_settings(config_dir=Path(tmp_path))
        assert settings.client_secret == "s3cret"
