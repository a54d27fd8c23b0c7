"""
gcontact_bridge.utils - Utility module

Common utilities including logging configuration and path resolution.
"""

from gcontact_bridge.utils.anonymize import anonymize_key
from gcontact_bridge.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = ["anonymize_key", "resolve_config_dir", "DEFAULT_CONFIG_DIR"]
