"""Command-line interface for linkcloud."""

import sys

import click
from dotenv import load_dotenv

from .config_loader import ConfigLoader, GatewayConfig
from .exceptions import ConfigurationError
from .logging_config import configure_logging
from .registry import build_registry


# Helper functions for colored output
def echo_success(message, quiet=False):
    """Echo success message in green."""
    if not quiet:
        click.secho(f"✅ {message}", fg="green")


def echo_error(message):
    """Echo error message in red."""
    click.secho(f"❌ {message}", fg="red", err=True)


def echo_info(message, quiet=False):
    """Echo info message in blue."""
    if not quiet:
        click.secho(message, fg="blue")


def load_config(config_path) -> GatewayConfig:
    """Load gateway configuration or exit with an error message."""
    try:
        return ConfigLoader().load(config_path)
    except ConfigurationError as e:
        echo_error(f"Configuration error: {e}")
        sys.exit(1)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    envvar="LINKCLOUD_CONFIG",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to YAML configuration (or set LINKCLOUD_CONFIG env var)",
)


@click.group()
@click.version_option(version="0.1.0")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json-logs", is_flag=True, help="Force JSON-formatted structured logging")
@click.pass_context
def main(ctx, quiet, json_logs):
    """LinkCloud - REST gateway for blob storage.

    Upload, download, list and delete blobs on cloud storage providers
    through one HTTP interface.
    """
    # Load environment variables from .env file if it exists
    load_dotenv()

    ctx.ensure_object(dict)
    ctx.obj["QUIET"] = quiet
    ctx.obj["JSON_LOGS"] = json_logs


@main.command()
@config_option
@click.option("--host", default=None, help="Interface to bind (overrides configuration)")
@click.option("--port", type=int, default=None, help="Port to listen on (overrides configuration)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (overrides configuration)",
)
@click.pass_context
def serve(ctx, config_path, host, port, log_level):
    """Run the HTTP gateway."""
    import uvicorn

    from .gateway import create_app

    quiet = ctx.obj.get("QUIET", False)
    config = load_config(config_path)

    logging_config = config.logging
    configure_logging(
        level=(log_level or logging_config.level).upper(),
        json_format=logging_config.json_format or ctx.obj.get("JSON_LOGS", False),
        log_file=logging_config.log_file,
    )

    try:
        registry = build_registry(config)
    except ConfigurationError as e:
        echo_error(f"Configuration error: {e}")
        sys.exit(1)

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    echo_info(f"🚀 Serving providers {', '.join(registry.names())} on {bind_host}:{bind_port}", quiet)

    uvicorn.run(create_app(registry), host=bind_host, port=bind_port, log_config=None, access_log=False)


@main.command()
@config_option
@click.pass_context
def providers(ctx, config_path):
    """List configured providers and validate their settings."""
    quiet = ctx.obj.get("QUIET", False)
    config = load_config(config_path)

    try:
        registry = build_registry(config)
    except ConfigurationError as e:
        echo_error(f"Configuration error: {e}")
        sys.exit(1)

    for name, backend in registry.items():
        click.echo(f"{name}\t{backend.provider_type}")
    echo_success(f"{len(registry)} provider(s) configured", quiet)


@main.command()
def version():
    """Show version information."""
    click.echo("linkcloud version 0.1.0")
    click.echo(f"Python {sys.version.split()[0]}")
