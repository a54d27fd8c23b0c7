"""CLI package for gcontact_bridge."""

from gcontact_bridge.cli.main import cli, format_contact, get_adapter, get_settings

__all__ = ["cli", "format_contact", "get_adapter", "get_settings"]
