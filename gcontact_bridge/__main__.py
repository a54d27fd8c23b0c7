"""
Entry point for running gcontact_bridge as a module.

Usage:
    python -m gcontact_bridge --help
    python -m gcontact_bridge auth-url
    python -m gcontact_bridge contacts --api-key "$KEY"
"""

from gcontact_bridge.cli import cli

if __name__ == "__main__":
    cli()
