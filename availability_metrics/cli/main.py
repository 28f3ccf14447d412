"""
CLI entry point for Availability Metrics.

Provides the command-line interface for running the metrics service and
for one-off availability checks.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from availability_metrics._version import __version__
from availability_metrics.config.settings import get_default_config_path, load_config
from availability_metrics.exceptions import InvalidConfigurationError
from availability_metrics.logging_config import get_logger, setup_logging
from availability_metrics.cli.context import CLIContext, pass_context


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
    help='Set logging level (default: from configuration)',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose output',
)
@click.version_option(version=__version__, prog_name='availability-metrics')
@pass_context
def cli(ctx: CLIContext, config: Optional[Path], log_level: Optional[str], verbose: bool):
    """
    Availability Metrics - probe git repositories, image registries and HTTP
    endpoints and export the results as Prometheus metrics.
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
        logger = get_logger("availability_metrics.cli")
        logger.info(f"Loaded configuration from: {ctx.config_path or get_default_config_path()}")
        logger.info(f"Log level: {effective_log_level}")


from availability_metrics.cli.commands import check, init, serve
cli.add_command(serve)
cli.add_command(check)
cli.add_command(init)


if __name__ == '__main__':
    cli()
