"""
Command-line interface for gcontact_bridge.

Operator tooling around the adapter: running the OAuth handshake by hand,
inspecting the contacts behind an API key and checking the configuration.

Usage:
    # Show help
    gcontact-bridge --help

    # OAuth handshake
    gcontact-bridge auth-url
    gcontact-bridge callback 4/0AbCdEf...

    # Contacts behind an API key
    gcontact-bridge contacts --api-key "$KEY"
    gcontact-bridge contacts --api-key "$KEY" --cached --json
    gcontact-bridge delete --api-key "$KEY" c12345

    # Check configuration
    gcontact-bridge status
"""

import json
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click

from gcontact_bridge import __version__
from gcontact_bridge.adapter import BridgeConfig, GoogleContactsAdapter
from gcontact_bridge.api.people_api import PeopleAPIError
from gcontact_bridge.auth.google_auth import AuthError, ValidationError
from gcontact_bridge.config.loader import ConfigError
from gcontact_bridge.config.settings import Settings, load_settings
from gcontact_bridge.sync.contact import Contact
from gcontact_bridge.sync.mapper import MappingError
from gcontact_bridge.utils import resolve_config_dir
from gcontact_bridge.utils.anonymize import anonymize_key
from gcontact_bridge.utils.logging import get_logger, setup_logging

# Environment variable holding the API key for contact commands
ENV_API_KEY = "GCONTACT_BRIDGE_API_KEY"

# Failures reported as a plain error message
OPERATION_ERRORS = (
    AuthError,
    ValidationError,
    PeopleAPIError,
    MappingError,
)

api_key_option = click.option(
    "--api-key",
    "-k",
    required=True,
    envvar=ENV_API_KEY,
    help=f"API key (access:refresh token pair). Defaults to ${ENV_API_KEY}.",
)


def _fail(message: str) -> NoReturn:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def get_settings(ctx: click.Context) -> Settings:
    """Return loaded settings or exit with the configuration error."""
    settings: Optional[Settings] = ctx.obj.get("settings")
    if settings is None:
        _fail(f"Configuration error: {ctx.obj.get('config_error')}")
    return settings


def get_adapter(ctx: click.Context) -> GoogleContactsAdapter:
    """Build the adapter once per invocation."""
    if "adapter" not in ctx.obj:
        adapter = GoogleContactsAdapter.from_settings(get_settings(ctx))
        ctx.obj["adapter"] = adapter
        ctx.call_on_close(adapter.close)
    adapter_obj: GoogleContactsAdapter = ctx.obj["adapter"]
    return adapter_obj


def format_contact(contact: Contact) -> str:
    """Single line summary of a contact."""
    phones = ", ".join(
        f"{entry.phone_number} ({getattr(entry.label, 'value', entry.label)})"
        for entry in contact.phone_numbers
    )
    parts = [contact.id, contact.display_name]
    if contact.email:
        parts.append(contact.email)
    if phones:
        parts.append(phones)
    return "  ".join(parts)


@click.group()
@click.version_option(version=__version__, prog_name="gcontact-bridge")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="GCONTACT_BRIDGE_CONFIG_DIR",
    help="Configuration directory path (default: ~/.gcontact-bridge).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="GCONTACT_BRIDGE_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: Optional[str],
    config_file: Optional[str],
) -> None:
    """
    Google Contacts bridge.

    Serves Google contacts to a host integration platform through a
    cached, write-through directory.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = resolve_config_dir(config_dir)
    ctx.obj["config_dir"] = resolved_config_dir

    settings: Optional[Settings] = None
    try:
        settings = load_settings(
            config_dir=resolved_config_dir,
            config_file=Path(config_file) if config_file else None,
        )
    except ConfigError as e:
        # Commands that need settings report the error themselves
        ctx.obj["config_error"] = str(e)

    ctx.obj["settings"] = settings

    setup_logging(
        level=settings.log_level if settings else None,
        verbose=verbose,
        log_dir=settings.log_dir if settings else None,
    )


# =============================================================================
# OAuth Commands
# =============================================================================


@cli.command("auth-url")
@click.pass_context
def auth_url_command(ctx: click.Context) -> None:
    """
    Print the Google consent URL.

    Example:

        gcontact-bridge auth-url
    """
    click.echo(get_adapter(ctx).get_oauth_redirect_url())


@cli.command("callback")
@click.argument("code")
@click.pass_context
def callback_command(ctx: click.Context, code: str) -> None:
    """
    Exchange an OAuth callback CODE for an API key.

    Example:

        gcontact-bridge callback 4/0AbCdEf...
    """
    logger = get_logger(__name__)

    try:
        config = get_adapter(ctx).handle_oauth_callback(code)
    except AuthError as e:
        logger.error(f"Code exchange failed: {e}")
        _fail(f"Authorization failed: {e}")

    click.echo(config.api_key)


# =============================================================================
# Contact Commands
# =============================================================================


@cli.command("contacts")
@api_key_option
@click.option(
    "--cached",
    is_flag=True,
    help=(
        "Serve from the cache and refresh in the background instead of fetching. "
        "Needs cache_backend: sqlite, the memory cache does not outlive the command."
    ),
)
@click.option("--json", "as_json", is_flag=True, help="Print contacts as JSON.")
@click.pass_context
def contacts_command(
    ctx: click.Context, api_key: str, cached: bool, as_json: bool
) -> None:
    """
    List the contacts behind an API key.

    Examples:

        gcontact-bridge contacts --api-key "$KEY"

        gcontact-bridge contacts --cached --json
    """
    logger = get_logger(__name__)
    if cached and get_settings(ctx).cache_backend != "sqlite":
        _fail(
            "--cached needs a persistent cache. Set cache_backend: sqlite in the "
            "configuration file."
        )

    adapter = get_adapter(ctx)
    config = BridgeConfig(api_key=api_key)

    try:
        if cached:
            contacts = adapter.get_contacts(config)
        else:
            contacts = adapter.refresh_contacts(config)
    except OPERATION_ERRORS as e:
        logger.error(f"Listing contacts for {anonymize_key(api_key)} failed: {e}")
        _fail(str(e))

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in contacts], indent=2))
        return

    for contact in contacts:
        click.echo(format_contact(contact))
    click.echo(f"\n{len(contacts)} contact(s)")


@cli.command("delete")
@api_key_option
@click.argument("contact_id")
@click.pass_context
def delete_command(ctx: click.Context, api_key: str, contact_id: str) -> None:
    """
    Delete the contact CONTACT_ID.

    Example:

        gcontact-bridge delete --api-key "$KEY" c12345
    """
    try:
        get_adapter(ctx).delete_contact(BridgeConfig(api_key=api_key), contact_id)
    except OPERATION_ERRORS as e:
        _fail(str(e))

    click.echo(click.style(f"Deleted {contact_id}", fg="green"))


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show the effective configuration.

    Example:

        gcontact-bridge status
    """
    click.echo("=== Google Contacts Bridge Status ===\n")
    click.echo(f"Configuration directory: {ctx.obj['config_dir']}")

    settings: Optional[Settings] = ctx.obj.get("settings")
    if settings is None:
        click.echo(
            click.style(f"Configuration error: {ctx.obj.get('config_error')}", fg="red")
        )
        sys.exit(1)

    click.echo(f"OAuth client: {settings.client_id}")
    click.echo(f"Redirect URL: {settings.redirect_url}")
    click.echo(f"Phone mode: {settings.phone_mode.value}")
    click.echo(f"Allowed phone types: {', '.join(settings.allowed_phone_types)}")
    click.echo(f"Primary strategy: {settings.primary_strategy.value}")
    click.echo(
        "Contacts without phone numbers: "
        + ("included" if settings.include_contacts_without_phone_numbers else "skipped")
    )
    click.echo(f"Page size: {settings.page_size}")
    cache_location = f" ({settings.cache_db})" if settings.cache_db else ""
    click.echo(f"Cache: {settings.cache_backend}{cache_location}")
    click.echo(f"Cache TTL: {settings.cache_ttl}s")
