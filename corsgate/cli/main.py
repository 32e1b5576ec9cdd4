"""
CLI entry point for Corsgate.

Loads configuration, sets up logging and runs the gateway server.
"""

import asyncio
import dataclasses
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from corsgate._version import __version__
from corsgate.config.settings import get_default_config_path, load_config, parse_listen_address
from corsgate.exceptions import CorsgateError, InvalidConfigurationError
from corsgate.logging_config import get_logger, setup_logging
from corsgate.cli.context import CLIContext, pass_context


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help=f'Path to configuration file (default: {get_default_config_path()})',
)
@click.option(
    '--log-level',
    '-l',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    default=None,
    help='Set logging level (overrides configuration)',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose output',
)
@click.version_option(version=__version__, prog_name='corsgate')
@pass_context
def cli(ctx: CLIContext, config: Optional[Path], log_level: Optional[str], verbose: bool):
    """
    Corsgate - Origin-gated CORS proxy gateway.
    """
    ctx.verbose = verbose
    ctx.config_path = str(config) if config else None

    try:
        ctx.config = load_config(ctx.config_path)
    except InvalidConfigurationError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    effective_log_level = log_level.upper() if log_level else ctx.config.logging.level
    log_file = Path(ctx.config.logging.file) if ctx.config.logging.file else None
    setup_logging(
        level=effective_log_level,
        log_file=log_file,
        json_format=ctx.config.logging.format == "json",
    )

    if verbose:
        logger = get_logger("cli")
        logger.info(f"Loaded configuration from: {ctx.config_path or 'defaults'}")
        logger.info(f"Log level: {effective_log_level}")


def validate_listen_address(ctx, param, value):
    """Validate a HOST:PORT listen address."""
    if value is None:
        return value
    try:
        parse_listen_address(value)
    except InvalidConfigurationError as e:
        raise click.BadParameter(str(e))
    return value


@cli.command()
@click.option(
    '--listen',
    callback=validate_listen_address,
    default=None,
    help='Listen address as HOST:PORT (overrides configuration)',
)
@click.option(
    '--whitelist',
    '-w',
    multiple=True,
    help='Allowed origin; repeat for several (replaces the configured whitelist)',
)
@click.option(
    '--blacklist',
    '-b',
    multiple=True,
    help='Rejected origin; repeat for several (replaces the configured blacklist)',
)
@pass_context
def serve(
    ctx: CLIContext,
    listen: Optional[str],
    whitelist: Tuple[str, ...],
    blacklist: Tuple[str, ...],
):
    """Run the gateway server."""
    from corsgate.gateway.server import create_server

    gateway_config = ctx.config.gateway
    overrides = {}
    if listen:
        overrides["listen_address"] = listen
    if whitelist:
        overrides["origin_whitelist"] = list(whitelist)
    if blacklist:
        overrides["origin_blacklist"] = list(blacklist)
    if overrides:
        gateway_config = dataclasses.replace(gateway_config, **overrides)

    try:
        server = create_server(gateway_config)
        asyncio.run(server.start())
    except CorsgateError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)


def main():
    cli()


if __name__ == '__main__':
    main()
