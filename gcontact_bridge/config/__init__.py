"""
gcontact_bridge.config - Configuration management module

Contains configuration loading, validation, and settings assembly.
"""

from gcontact_bridge.config.loader import ConfigError, ConfigLoader
from gcontact_bridge.config.settings import Settings, load_settings, parse_interval

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "Settings",
    "load_settings",
    "parse_interval",
]
