"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

CLI commands for running and checking availability probes.
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from availability_metrics.config.settings import get_default_config_path
from availability_metrics.exceptions import AvailabilityMetricsError
from availability_metrics.service import check_once, run_service


EXAMPLE_CONFIG = """\
service:
  listen_port: 8080
  poll_interval: 60
  metrics_prefix: metrics_server
  max_concurrency: 1
  reason_labels: raw   # or "kind" to label failures by error class
  request_timeout: 30
logging:
  level: INFO
  format: console      # or "json"
checks:
  git:
    - name: release_service_catalog
      url: https://github.com/konflux-ci/release-service-catalog.git
      revision: refs/heads/development
      path: README.md
  quay:
    - name: release_service_utils
      pullspec: quay.io/konflux-ci/release-service-utils
      tags: [latest]
      # credentials: RELEASE_SERVICE_UTILS_QUAY_USERNAME / _QUAY_PASSWORD
  http:
    - name: konflux_docs
      url: https://konflux-ci.dev/docs/
      follow_redirect: true
"""


@click.command('serve')
@click.option(
    '--port',
    '-p',
    type=int,
    default=None,
    help='Metrics listen port (default: service.listen_port)',
)
@click.pass_context
def serve(ctx, port):
    """
    Run the probe loop and serve /metrics until interrupted.

    Examples:

        availability-metrics -c server-config.yaml serve

        availability-metrics serve --port 9100
    """
    cli_ctx = ctx.obj
    config = cli_ctx.config

    if port is not None:
        config.service.listen_port = port

    if not config.checks.names():
        click.echo("Warning: no checks configured, serving empty metrics", err=True)

    try:
        asyncio.run(run_service(config))
    except KeyboardInterrupt:
        pass
    except (AvailabilityMetricsError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command('check')
@click.option(
    '--format',
    '-f',
    type=click.Choice(['table', 'json'], case_sensitive=False),
    default='table',
    help='Output format (default: table)',
)
@click.pass_context
def check(ctx, format: str):
    """
    Run every configured check once and print the outcomes.

    Exits with status 1 if any check failed.

    Examples:

        availability-metrics check

        availability-metrics -c server-config.yaml check --format json
    """
    cli_ctx = ctx.obj
    config = cli_ctx.config

    if not config.checks.names():
        click.echo("No checks configured.")
        return

    results = asyncio.run(check_once(config))

    if format.lower() == 'json':
        output = [
            {
                "check": probe.name,
                "kind": probe.kind,
                "code": outcome.code,
                "status": outcome.status,
                "reason": outcome.reason,
            }
            for probe, outcome in results
        ]
        click.echo(json.dumps(output, indent=2))
    else:
        name_width = max(len("Check"), *(len(probe.name) for probe, _ in results))
        kind_width = max(len("Kind"), *(len(probe.kind) for probe, _ in results))

        header = f"{'Check':<{name_width}}  {'Kind':<{kind_width}}  {'Status':<9}  Reason"
        click.echo(header)
        click.echo("-" * len(header))
        for probe, outcome in results:
            click.echo(
                f"{probe.name:<{name_width}}  "
                f"{probe.kind:<{kind_width}}  "
                f"{outcome.status:<9}  "
                f"{outcome.reason}"
            )

    if any(not outcome.ok for _, outcome in results):
        sys.exit(1)


@click.command('init')
@click.option(
    '--force',
    is_flag=True,
    help='Overwrite an existing configuration file',
)
@click.pass_context
def init(ctx, force: bool):
    """
    Write an example configuration file.
    """
    cli_ctx = ctx.obj
    config_path = Path(cli_ctx.config_path or get_default_config_path())

    if config_path.exists() and not force:
        click.echo(f"Configuration already exists: {config_path}")
        return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(EXAMPLE_CONFIG)
    click.echo(f"Created configuration: {config_path}")
